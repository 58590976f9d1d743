# setup.py
import os
from setuptools import setup, find_packages

# Function to read the requirements.txt file
def parse_requirements(filename="requirements.txt"):
    with open(os.path.join(os.path.dirname(__file__), filename), 'r') as f:
        return [line.strip() for line in f if line.strip() and not line.startswith('#')]

# Read the contents of your README file for long description
try:
    with open(os.path.join(os.path.dirname(__file__), 'README.md'), encoding='utf-8') as f:
        long_description = f.read()
except FileNotFoundError:
    long_description = "Reviews GitHub pull requests with golangci-lint findings on the changed lines."

# Get version from package __init__.py
version = {}
try:
    with open(os.path.join(os.path.dirname(__file__), "src", "lint_pr_reviewer", "__init__.py")) as fp:
        exec(fp.read(), version)
except FileNotFoundError:
    version['__version__'] = "0.1.0-dev" # Fallback version

setup(
    name='lint-pr-reviewer',
    version=version['__version__'],
    description='Runs golangci-lint on pull requests and reviews only the lines they change.',
    long_description=long_description,
    long_description_content_type='text/markdown',
    license='Apache License 2.0',
    package_dir={'': 'src'},
    packages=find_packages(where='src', exclude=['tests*', '*.tests', '*.tests.*']),
    include_package_data=True,
    install_requires=parse_requirements(),
    extras_require={
        'test': ['pytest>=7.0', 'httpx>=0.24'],
    },
    python_requires='>=3.8',
    entry_points={
        'console_scripts': [
            'lint-pr-reviewer = lint_pr_reviewer.main:main_cli',
        ],
    },
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: Apache Software License',
        'Operating System :: OS Independent',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Software Development :: Quality Assurance',
    ],
    keywords='github pull request code review golangci-lint linter webhook',
)
