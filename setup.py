"""Setup script for the hass2mqtt package."""

from setuptools import find_packages, setup

setup(
    name="hass2mqtt",
    version="0.1.0",
    description="Home Assistant state change events to MQTT bridge",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "pyyaml",
        "python-dotenv",
        "paho-mqtt>=2.0.0",
        "aiohttp",
    ],
    extras_require={
        "dev": [
            "pytest",
            "pytest-asyncio",
            "black",
            "isort",
            "mypy",
        ],
    },
    entry_points={
        "console_scripts": [
            "hass2mqtt=hass2mqtt.bridge:main",
        ],
    },
)
