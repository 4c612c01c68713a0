import logging
from pathlib import Path

import numpy as np

from skydft.errors import DataLoadError

logger = logging.getLogger(__name__)


def read_counted_table(path, num_columns, dtype):
    """
    Read a whitespace separated table preceded by a line holding its row count.

    Returns
    -------
    rows :
        Array [count, num_columns] of ``dtype``
    """
    path = Path(path)
    try:
        with path.open() as f:
            header = f.readline()
            try:
                count = int(header.split()[0])
            except (IndexError, ValueError) as exc:
                raise DataLoadError(
                    f"{path}: first line must hold the record count, got {header!r}"
                ) from exc
            if count < 0:
                raise DataLoadError(f"{path}: negative record count {count}")
            if count == 0:
                return np.empty((0, num_columns), dtype=dtype)

            rows = np.loadtxt(f, dtype=dtype, ndmin=2, max_rows=count)
    except DataLoadError:
        raise
    except OSError as exc:
        raise DataLoadError(f"Unable to read {path}: {exc}") from exc
    except MemoryError as exc:
        raise DataLoadError(f"Not enough memory to load {count} records from {path}") from exc
    except ValueError as exc:
        raise DataLoadError(f"{path}: malformed record: {exc}") from exc

    if rows.shape != (count, num_columns):
        raise DataLoadError(
            f"{path}: expected {count} records of {num_columns} values, "
            f"got shape {rows.shape}"
        )

    logger.debug("Read %d records from %s", count, path)
    return rows
