from setuptools import setup, find_packages

setup(
    name='ecectl',
    version='0.1.0',
    packages=find_packages(),
    include_package_data=True,
    install_requires=[
        'typer[all]',
        'python-dotenv',
        'requests',
        'PyYAML',
        'jsonschema'
    ],
    extras_require={
        'test': ['pytest']
    },
    entry_points={
        'console_scripts': [
            'ecectl=ecectl.cli:app'
        ]
    },
    author='Your Name',
    description='A CLI and client library for search cluster lifecycle management on a plan-based control plane',
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: OS Independent',
    ],
    python_requires='>=3.8',
)
