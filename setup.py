from setuptools import setup

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="schoolfee-ledger",
    version="1.0.0",
    description="SchoolFee Ledger: school income and expense administration",
    long_description=long_description,
    long_description_content_type="text/markdown",
    py_modules=[
        'app',
        'app_models',
        'bootstrap',
        'config',
        'entities',
        'errors',
        'forms',
        'health',
        'ledger',
        'persistence',
        'reporting',
        'sample_data',
        'security',
        'store',
        'wsgi',
    ],
    include_package_data=True,
    install_requires=[
        'Flask>=2.3',
        'Flask-SQLAlchemy>=3.0.5',
        'Flask-WTF>=1.2.1',
        'python-dotenv>=1.0.0',
        'SQLAlchemy>=2.0',
        'WTForms>=3.0.1',
        'Werkzeug>=2.3.7',
        'click>=8.1',
        'email-validator>=2.0',
    ],
    extras_require={
        'postgres': ['psycopg2-binary>=2.9.9'],
        'test': ['pytest>=7.4'],
    },
    python_requires='>=3.9',
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    entry_points={
        'console_scripts': [
            'schoolfee-ledger=wsgi:main',
        ],
    },
)
