from .resolver import parse_target, split_host_path

__all__ = ["parse_target", "split_host_path"]
