from railbook.clients.registry import Collaborators, build_collaborators, get_collaborators

__all__ = ["Collaborators", "build_collaborators", "get_collaborators"]
