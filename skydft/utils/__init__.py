from .sizes import LaunchGeometry, get_launch_geometry

__all__ = ["LaunchGeometry", "get_launch_geometry"]
