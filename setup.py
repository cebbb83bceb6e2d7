from setuptools import find_packages, setup

setup(
    name="myapp-operator",
    version="0.1.0",
    packages=find_packages(
        include=[
            "myapp_common",
            "myapp_common.*",
            "myapp_persistence",
            "myapp_persistence.*",
            "myapp_controller",
            "myapp_controller.*",
            "myapp_server",
            "myapp_server.*",
            "myapp_client",
            "myapp_client.*",
            "myapp_admin",
            "myapp_admin.*",
        ]
    ),
    install_requires=[
        "requests>=2.31.0",
        "fastapi>=0.104.0",
        "pydantic>=2.0",
        "uvicorn>=0.24.0",
        "aiosqlite>=0.19.0",
        "click>=8.1.0",
        "kubernetes>=28.1.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-xdist>=3.3.0",
            "httpx>=0.25.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "myapp=myapp_client.cli:main",
            "myapp-controller=myapp_controller.__main__:main",
            "myapp-admin=myapp_admin.cli:cli",
        ],
    },
    python_requires=">=3.10",
)
