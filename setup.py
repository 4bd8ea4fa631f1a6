from setuptools import setup, find_packages

setup(
    name="nlq-dashboard",
    version="0.1.0",
    packages=find_packages(exclude=['tests', 'tests.*', 'scripts', 'cache', '.pytest_cache']),
    install_requires=[
        "langchain-core>=0.3.0,<0.4.0",
        "openai>=1.0.0",
        "httpx>=0.27.0",
        "sqlalchemy>=2.0.0",
        "pymysql>=1.1.0",
        "pydantic>=2.5.0",
        "pydantic-settings>=2.1.0",
        "python-dotenv>=1.0.0",
        "fastapi>=0.109.0",
        "uvicorn>=0.27.0",
        "slowapi>=0.1.8",
    ],
    extras_require={
        "mssql": [
            "pyodbc>=5.0.0",
        ],
        "oracle": [
            "oracledb>=2.0.0",
        ],
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-mock>=3.10.0",
            "respx>=0.21.0",
        ],
    },
    python_requires=">=3.11",
)
