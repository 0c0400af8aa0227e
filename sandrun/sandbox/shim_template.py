"""
Guest-side confinement shim template.

The template is data: it is rendered by :mod:`sandrun.sandbox.shim` into a
standalone script that runs inside the guest interpreter. Bump
``SHIM_TEMPLATE_VERSION`` whenever the generated code changes behavior.

Placeholders (``string.Template`` syntax) are filled with base64 text only,
so caller-controlled content never needs quoting or escaping:

- ``version``: template version
- ``config_b64``: base64 of the UTF-8 JSON shim configuration
- ``code_b64``: base64 of the UTF-8 caller source
- ``user_code_filename``: pseudo-filename shown in caller tracebacks

The template must not contain any other dollar signs.
"""

from string import Template

SHIM_TEMPLATE_VERSION = "4"

USER_CODE_FILENAME = "<user_code>"

SHIM_TEMPLATE = Template(
    r'''# Generated by sandrun confinement shim v${version}. Do not edit.
import sys as _sys
import traceback as _traceback


def _sandbox_setup():
    import base64
    import builtins
    import io
    import json
    import linecache
    import os
    import pathlib
    import shutil
    import tempfile
    import tokenize  # noqa: F401  (binds the unpatched open for traceback source lines)

    config = json.loads(base64.b64decode("${config_b64}").decode("utf-8"))
    source = base64.b64decode("${code_b64}").decode("utf-8")

    sep = os.sep
    altsep = os.altsep
    fold_case = bool(config["fold_case"])
    roots = tuple(config["roots"])
    readable_roots = roots + tuple(config["read_only_roots"])
    workdir = config["workdir"]
    scratch_dir = config["scratch_dir"]

    realpath = os.path.realpath
    expanduser = os.path.expanduser
    fspath = os.fspath
    fsdecode = os.fsdecode

    def normalize(path):
        raw = fspath(path)
        if isinstance(raw, bytes):
            raw = fsdecode(raw)
        if not raw:
            raise ValueError("empty path")
        resolved = realpath(expanduser(raw))
        stripped = resolved.rstrip(sep)
        if altsep:
            stripped = stripped.rstrip(altsep)
        if not stripped or stripped.endswith(":"):
            stripped = resolved
        return stripped.lower() if fold_case else stripped

    def within(candidate, root):
        if candidate == root:
            return True
        prefix = root if root.endswith(sep) else root + sep
        return candidate.startswith(prefix)

    def is_allowed(path, write=True):
        try:
            candidate = normalize(path)
        except Exception:
            return False
        for root in roots if write else readable_roots:
            if within(candidate, root):
                return True
        return False

    def check(path, write=True):
        # Numeric file descriptors are not path based.
        if isinstance(path, int):
            return
        if not is_allowed(path, write):
            try:
                shown = fsdecode(fspath(path))
            except TypeError:
                shown = repr(path)
            raise PermissionError("Access denied: %s is outside allowed directories" % shown)

    def uses_dir_fd(kwargs):
        return any(value is not None for key, value in kwargs.items() if key.endswith("dir_fd"))

    def mirrors(original):
        # Copies identity attributes only; no __wrapped__ back-reference.
        def decorate(wrapper):
            for attr in ("__module__", "__name__", "__qualname__", "__doc__"):
                if hasattr(original, attr):
                    setattr(wrapper, attr, getattr(original, attr))
            return wrapper

        return decorate

    def guarded(func, params):
        # params: (position, keyword, write, default-when-omitted)
        @mirrors(func)
        def wrapper(*args, **kwargs):
            if not uses_dir_fd(kwargs):
                for position, keyword, write, default in params:
                    if position < len(args):
                        value = args[position]
                    elif keyword in kwargs:
                        value = kwargs[keyword]
                    else:
                        value = default
                    if value is not None:
                        check(value, write)
            return func(*args, **kwargs)

        return wrapper

    def writes_mode(mode):
        return any(flag in str(mode) for flag in "wax+")

    write_flags = (
        os.O_WRONLY
        | os.O_RDWR
        | os.O_CREAT
        | os.O_TRUNC
        | os.O_APPEND
        | getattr(os, "O_EXCL", 0)
        | getattr(os, "O_TMPFILE", 0)
    )

    # Layer 1: builtins / io / os primitives.
    original_open = builtins.open

    @mirrors(original_open)
    def confined_open(file, *args, **kwargs):
        mode = args[0] if args else kwargs.get("mode", "r")
        check(file, writes_mode(mode))
        return original_open(file, *args, **kwargs)

    builtins.open = confined_open
    io.open = confined_open

    original_os_open = os.open

    @mirrors(original_os_open)
    def confined_os_open(path, flags, *args, **kwargs):
        if not uses_dir_fd(kwargs):
            check(path, bool(flags & write_flags))
        return original_os_open(path, flags, *args, **kwargs)

    os.open = confined_os_open

    def one(name, write=True, default=None):
        return [(0, name, write, default)]

    def two(first, second, first_write=True):
        return [(0, first, first_write, None), (1, second, True, None)]

    os_targets = {
        "mkdir": one("path"),
        "makedirs": one("name"),
        "remove": one("path"),
        "unlink": one("path"),
        "rmdir": one("path"),
        "removedirs": one("name"),
        "rename": two("src", "dst"),
        "renames": two("old", "new"),
        "replace": two("src", "dst"),
        "link": two("src", "dst"),
        "symlink": two("src", "dst"),
        "chmod": one("path"),
        "lchmod": one("path"),
        "chown": one("path"),
        "lchown": one("path"),
        "chflags": one("path"),
        "lchflags": one("path"),
        "truncate": one("path"),
        "utime": one("path"),
        "mkfifo": one("path"),
        "mknod": one("path"),
        "listdir": one("path", write=False, default="."),
    }
    for name, params in os_targets.items():
        if hasattr(os, name):
            setattr(os, name, guarded(getattr(os, name), params))

    # Layer 2: recursive copy/move/delete utilities.
    shutil_targets = {
        "copyfile": two("src", "dst", first_write=False),
        "copy": two("src", "dst", first_write=False),
        "copy2": two("src", "dst", first_write=False),
        "copytree": two("src", "dst", first_write=False),
        "copymode": two("src", "dst", first_write=False),
        "copystat": two("src", "dst", first_write=False),
        "move": two("src", "dst"),
        "rmtree": one("path"),
        "chown": one("path"),
        "make_archive": [(0, "base_name", True, None), (2, "root_dir", False, None)],
        "unpack_archive": [(0, "filename", False, None), (1, "extract_dir", True, None)],
    }
    for name, params in shutil_targets.items():
        if hasattr(shutil, name):
            setattr(shutil, name, guarded(getattr(shutil, name), params))

    # Layer 3: object-oriented path API.
    path_cls = pathlib.Path
    original_path_open = path_cls.open

    @mirrors(original_path_open)
    def confined_path_open(self, *args, **kwargs):
        mode = args[0] if args else kwargs.get("mode", "r")
        check(self, writes_mode(mode))
        return original_path_open(self, *args, **kwargs)

    path_cls.open = confined_path_open

    path_targets = {
        "read_text": one("self", write=False),
        "read_bytes": one("self", write=False),
        "iterdir": one("self", write=False),
        "glob": one("self", write=False),
        "rglob": one("self", write=False),
        "write_text": one("self"),
        "write_bytes": one("self"),
        "touch": one("self"),
        "mkdir": one("self"),
        "unlink": one("self"),
        "rmdir": one("self"),
        "chmod": one("self"),
        "lchmod": one("self"),
        "rename": two("self", "target"),
        "replace": two("self", "target"),
        "symlink_to": two("self", "target"),
        "hardlink_to": two("self", "target"),
    }
    for name, params in path_targets.items():
        if hasattr(path_cls, name):
            setattr(path_cls, name, guarded(getattr(path_cls, name), params))

    # Temporary files default into the scratch directory; explicit dirs are checked.
    tempfile.tempdir = scratch_dir
    for variable in ("TMPDIR", "TEMP", "TMP"):
        os.environ[variable] = scratch_dir

    tempfile_targets = {
        "mkstemp": [(2, "dir", True, None)],
        "mkdtemp": [(2, "dir", True, None)],
        "NamedTemporaryFile": [(6, "dir", True, None)],
        "TemporaryFile": [(6, "dir", True, None)],
    }
    for name, params in tempfile_targets.items():
        if hasattr(tempfile, name):
            setattr(tempfile, name, guarded(getattr(tempfile, name), params))

    class TemporaryDirectory(tempfile.TemporaryDirectory):
        def __init__(self, suffix=None, prefix=None, dir=None, *args, **kwargs):
            if dir is not None:
                check(dir)
            super().__init__(suffix, prefix, dir, *args, **kwargs)

    class SpooledTemporaryFile(tempfile.SpooledTemporaryFile):
        def __init__(self, *args, **kwargs):
            directory = args[7] if len(args) > 7 else kwargs.get("dir")
            if directory is not None:
                check(directory)
            super().__init__(*args, **kwargs)

    tempfile.TemporaryDirectory = TemporaryDirectory
    tempfile.SpooledTemporaryFile = SpooledTemporaryFile

    os.chdir(workdir)

    linecache.cache["${user_code_filename}"] = (
        len(source),
        None,
        source.splitlines(True),
        "${user_code_filename}",
    )
    namespace = {
        "__name__": "__main__",
        "__doc__": None,
        "__builtins__": builtins,
        "os": os,
        "sys": _sys,
    }
    return source, namespace


_source, _namespace = _sandbox_setup()
del _sandbox_setup

try:
    exec(compile(_source, "${user_code_filename}", "exec"), _namespace)
except SystemExit:
    raise
except BaseException as _exc:
    # Skip this shim's own frame.
    _tb = _exc.__traceback__.tb_next if _exc.__traceback__ is not None else None
    _traceback.print_exception(type(_exc), _exc, _tb)
    _sys.stderr.flush()
    _sys.exit(1)
'''
)
