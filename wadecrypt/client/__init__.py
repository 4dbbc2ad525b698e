from .media import MediaManager, fetch_encrypted_media

__all__ = ["MediaManager", "fetch_encrypted_media"]
