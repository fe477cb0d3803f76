import json
from winkey import core


DEFAULT_SETTINGS = {
    "debug": False,
    # Optional DigitalProductId dump (.bin or .reg/hex export). Used before the
    # live registry when set.
    "record_file": "",
    "registry_value": "DigitalProductId",
    # Last five symbols reported by the licensing service, shown masked when
    # no record can be decoded.
    "partial_key": "",
    "window_title": core.APP_NAME,
}


def load_settings():
    try:
        if core.CONFIG_PATH.exists():
            with open(core.CONFIG_PATH, "r", encoding="utf-8") as f:
                data = json.load(f)
                if isinstance(data, dict):
                    return {**DEFAULT_SETTINGS, **data}
    except (OSError, ValueError):
        pass
    return DEFAULT_SETTINGS.copy()


def save_settings(settings) -> bool:
    """Persist settings without discarding keys written by other parts of the app.

    - Loads the current on-disk JSON (if any)
    - Deep-merges provided settings into it (dict values merged, others replaced)
    - Writes the merged result atomically
    """
    def _deep_merge(dst, src):
        if isinstance(dst, dict) and isinstance(src, dict):
            for k, v in src.items():
                if k in dst and isinstance(dst[k], dict) and isinstance(v, dict):
                    _deep_merge(dst[k], v)
                else:
                    dst[k] = v
            return dst
        return src

    path = core.CONFIG_PATH
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        current = {}
        if path.exists():
            try:
                with open(path, "r", encoding="utf-8") as rf:
                    current = json.load(rf) or {}
            except ValueError:
                current = {}
        merged = _deep_merge(current if isinstance(current, dict) else {}, settings or {})
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(merged, f, indent=2)
        tmp_path.replace(path)
        return True
    except OSError:
        # Callers report the failure
        return False
