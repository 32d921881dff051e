from setuptools import setup, find_packages

setup(
    name='spotlightdl',
    version='1.5.0',
    description='Download Windows Spotlight images and keep a bounded local cache',
    package_dir={'': 'src'},
    packages=find_packages(where='src'),
    python_requires='>=3.10',
    install_requires=[
        'requests',
        'PyYAML',
        'platformdirs',
        'rich',
        'Pillow',
    ],
    extras_require={
        'test': [
            'pytest<9',
            'pytest-mock',
        ],
    },
)
