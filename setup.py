from setuptools import setup, find_namespace_packages

setup(
    name="serenity-proxy",
    version="0.1.0",
    packages=find_namespace_packages(include=["serenity", "serenity.*"]),
    python_requires=">=3.10",
    install_requires=[
        "fastapi>=0.110",
        "uvicorn>=0.27",
        "pydantic>=2.5",
        "pydantic-settings>=2.7",
        "httpx>=0.27",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
            "respx>=0.21",
        ],
    },
)
