DEFAULT_ARTIFACT_ROOT = "var/artifacts"


def build_artifact_store(*args: object, **kwargs: object):
    from classroom.lib.artifacts.factory import build_artifact_store as _build_artifact_store

    return _build_artifact_store(*args, **kwargs)


__all__ = ["DEFAULT_ARTIFACT_ROOT", "build_artifact_store"]
