from dataclasses import dataclass

import pytest

from claw.registry import DuplicatePackageError, package_descr, register_package


@dataclass
class _Pkg:
    full_path: str
    name: str = "pkg"


def test_register_then_fetch():
    pkg = _Pkg("example.test/registry/fetch")
    register_package(pkg)
    assert package_descr("example.test/registry/fetch") is pkg


def test_missing_path_returns_none():
    assert package_descr("example.test/registry/missing") is None


def test_duplicate_registration_rejected():
    register_package(_Pkg("example.test/registry/dup"))
    with pytest.raises(DuplicatePackageError):
        register_package(_Pkg("example.test/registry/dup", name="other"))
    assert package_descr("example.test/registry/dup").name == "pkg"


def test_distinct_paths_are_separate():
    a = _Pkg("example.test/registry/a")
    b = _Pkg("example.test/registry/b")
    register_package(a)
    register_package(b)
    assert package_descr(a.full_path) is a
    assert package_descr(b.full_path) is b