from setuptools import setup, find_packages

setup(
    name='manifestor',
    version='0.1.0',
    package_dir={'': 'src'},
    packages=find_packages(where='src'),
    python_requires='>=3.10',
    install_requires=[
        'requests',
        'urllib3',
        'rich',
        'PyYAML',
        'platformdirs',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-mock',
        ],
    },
    entry_points={
        'console_scripts': [
            'manifestor=manifestor.cli:main',
        ],
    },
)
