"""Deploy container stacks from git repositories to Docker or Docker Swarm."""

__version__ = "0.1.0"
