from setuptools import setup, find_packages

setup(
    name='textsheets',
    version='0.1.0',
    description='Tables computed from free-form text by small formulas',
    packages=find_packages(include=['textsheets', 'textsheets.*']),
    python_requires='>=3.9',
    install_requires=[
        'pydantic>=2.0',
        'fastapi',
        'uvicorn',
    ],
    extras_require={
        'test': ['pytest', 'httpx'],
    },
)
