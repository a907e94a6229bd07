# coding=utf-8
"""
fingerprint_store.py

Read and write single fingerprints and named fingerprint collections.
Collections can be kept as JSON, gzipped pickle or HDF5.
"""

import gzip as zlib
import json
import logging
import os
import pickle
from collections.abc import Mapping
from enum import Enum
from typing import Any

import h5py  # type: ignore[import-untyped]
import numpy as np

from singerprint.core.fingerprint import Fingerprint

logger = logging.getLogger("singerprint")


class DatabaseType(Enum):
    JSON = "JSON"
    HDF = "HDF"
    PKL = "PKL"


# Current format version
DB_VERSION = 20261019
# Earliest acceptable version
DB_COMPAT_VERSION = 20261019

_EXTENSIONS = {
    DatabaseType.JSON: (".json",),
    DatabaseType.HDF: (".hdf",),
    DatabaseType.PKL: (".pkl", ".pklz"),
}


def _type_for_extension(ext: str) -> DatabaseType | None:
    for save_type, exts in _EXTENSIONS.items():
        if ext in exts:
            return save_type
    return None


def save_fingerprint(fingerprint: Fingerprint, name: str) -> None:
    """Write one fingerprint to <name> as a JSON document."""
    with open(name, "w") as f:
        json.dump(fingerprint.to_dict(), f, indent=2)


def load_fingerprint(name: str) -> Fingerprint:
    with open(name, "r") as f:
        return Fingerprint.from_dict(json.load(f))


def save_database(
    collection: Mapping[str, Fingerprint],
    name: str,
    save_type: DatabaseType | str | None = None,
) -> str:
    """Write collection to <name>; return the filename actually used.

    Without save_type the type follows the extension, falling back to
    JSON for anything unrecognised, and <name> is written as given so
    that load_database(name) reads it back.  An explicit save_type whose
    extension does not match <name> replaces the extension.
    """
    base, ext = os.path.splitext(name)
    ext = ext.lower()

    if save_type is None:
        save_type = _type_for_extension(ext) or DatabaseType.JSON
    else:
        try:
            save_type = DatabaseType(save_type)
        except ValueError as err:
            raise ValueError(f"Unknown database type: {save_type}") from err
        if ext not in _EXTENSIONS[save_type]:
            name = f"{base}{_EXTENSIONS[save_type][-1]}"

    if save_type is DatabaseType.HDF:
        save_hdf(collection, name)
    elif save_type is DatabaseType.PKL:
        save_pkl(collection, name)
    else:
        save_json(collection, name)
    _log_summary("Saved", collection, name)
    return name


def save_json(collection: Mapping[str, Fingerprint], name: str) -> None:
    with open(name, "w") as f:
        json.dump({key: fp.to_dict() for key, fp in collection.items()}, f, indent=2)


def save_pkl(collection: Mapping[str, Fingerprint], name: str) -> None:
    payload = {
        "version": DB_VERSION,
        "fingerprints": {key: fp.to_dict() for key, fp in collection.items()},
    }
    with zlib.open(name, "wb") as f:
        pickle.dump(payload, f, pickle.HIGHEST_PROTOCOL)


def save_hdf(collection: Mapping[str, Fingerprint], name: str) -> None:
    with h5py.File(name, "w") as temp:
        temp.attrs["version"] = DB_VERSION
        for ix, (key, fp) in enumerate(collection.items()):
            group = temp.create_group(str(ix))
            group.attrs["name"] = key
            group.create_dataset("peaks", data=np.array(fp.peaks, dtype=np.float64).reshape(-1, 2))
            group.create_dataset("hashes", data=fp.hash_array)


def load_database(name: str) -> dict[str, Fingerprint]:
    """Read a collection file; a missing file is an empty collection."""
    if not os.path.exists(name):
        logger.debug(f"{name} does not exist, starting an empty collection")
        return {}
    ext = os.path.splitext(name)[1].lower()
    load_type = _type_for_extension(ext)
    if load_type is DatabaseType.HDF:
        collection = load_hdf(name)
    elif load_type is DatabaseType.PKL:
        collection = load_pkl(name)
    else:
        if load_type is None:
            logger.debug("Collection file type is not specified. Loading as JSON")
        collection = load_json(name)
    _log_summary("Read", collection, name)
    return collection


def load_json(name: str) -> dict[str, Fingerprint]:
    with open(name, "r") as f:
        doc = json.load(f)
    return {key: Fingerprint.from_dict(value) for key, value in doc.items()}


def _check_version(version: Any, name: str) -> None:
    if version is None or int(version) < DB_COMPAT_VERSION:
        raise ValueError(f"Version of {name} is {version} which is not at least {DB_COMPAT_VERSION}")


def load_pkl(name: str) -> dict[str, Fingerprint]:
    with zlib.open(name, "rb") as f:
        temp = pickle.load(f)
    _check_version(temp.get("version"), name)
    return {key: Fingerprint.from_dict(value) for key, value in temp["fingerprints"].items()}


def load_hdf(name: str) -> dict[str, Fingerprint]:
    collection: dict[str, Fingerprint] = {}
    with h5py.File(name, "r") as temp:
        _check_version(temp.attrs.get("version"), name)
        for key in sorted(temp.keys(), key=int):
            group = temp[key]
            peaks = [tuple(row) for row in group["peaks"][...].tolist()]
            hashes = group["hashes"][...].tolist()
            collection[str(group.attrs["name"])] = Fingerprint(tuple(peaks), tuple(hashes))
    return collection


def _log_summary(action: str, collection: Mapping[str, Fingerprint], name: str) -> None:
    nhashes = sum(len(fp) for fp in collection.values())
    logger.debug(f"{action} fprints for {len(collection)} names ({nhashes} hashes) {name}")
