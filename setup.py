import setuptools

setuptools.setup(
    name="pairlink",
    version="0.1.0",
    description="A learner/teacher matchmaking and WebRTC signaling relay built on Flask-SocketIO.",
    packages=setuptools.find_packages(include=["pairlink", "pairlink.*"]),
    install_requires=[
        "eventlet",
        "flask",
        "flask-socketio",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-timeout>=2.3",
        ],
    },
)
