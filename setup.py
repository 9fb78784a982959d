from setuptools import setup, find_packages

setup(
    name="romfetch",
    version="0.1.0",
    packages=find_packages(exclude=['tests', 'tests.*']),
    package_data={'romfetch': ['data/*.yaml']},
    install_requires=[
        'pyyaml',
        'requests',
        'tqdm',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': ['romfetch=romfetch.orchestration:main'],
    },
    python_requires='>=3.8',
)
