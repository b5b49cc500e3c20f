"""Local build, deploy and debug loop for Maven web applications on Tomcat."""

__version__ = "1.0.0"
