import pathlib
import json
import hashlib
import shutil
import tempfile
import urllib.request
import zipfile
import zlib
from typing import Union
import numpy as np
import pandas as pd
from tqdm.auto import tqdm


COLUMNS = ['steps', 'date', 'interval']
WEEKDAYS = ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday']
WEEKEND = ('Saturday', 'Sunday')
NA_VALUES = ('NA', '')
# every 5 minutes from 00:00 to 23:55, as H*100+M codes
INTERVALS = [h * 100 + m for h in range(24) for m in range(0, 60, 5)]


class FetchFailure(Exception):
    """ The dataset could not be downloaded or extracted """


class ParseFailure(ValueError):
    """ The dataset file is malformed """


def fetch(
    url: str,
    filepath: Union[str, pathlib.Path],
    force_download: bool = False,
    checksum: str = None,
    timeout: float = 60,
    verbose: bool = True
):
    """
    Make sure the dataset file exists locally, downloading and extracting it if needed.

    The remote resource is expected to be a zip archive containing exactly one file,
    which is extracted to `filepath`. If `filepath` already exists (and `force_download`
    is False) nothing is downloaded.

    Parameters:
    - url (str): The location of the zip archive. Any scheme supported by urllib works, e.g. https:// or file://.
    - filepath (str or pathlib.Path): Where the extracted dataset file should live.
    - force_download (bool, optional): Download again even if the file exists. Defaults to False.
    - checksum (str, optional): Expected MD5 checksum of the downloaded archive. Default is None (no check).
    - timeout (float, optional): Network timeout in seconds. Defaults to 60.
    - verbose (bool, optional): If True, print progress messages. Default is True.

    Returns:
    - pathlib.Path: The path to the dataset file.

    Raises:
    - FetchFailure: If the download, checksum verification or extraction fails. Nothing is retried.

    Example:
        pth = fetch('https://example.org/activity.zip', 'activity.csv')
    """

    pth = pathlib.Path(filepath)

    if pth.exists() and not force_download:
        if verbose:
            print(f"Found {pth}, skipping download")
        return pth

    pth.parent.mkdir(parents=True, exist_ok=True)
    # scratch folder, pth is only written once extraction has succeeded
    tmpdir = pathlib.Path(tempfile.mkdtemp(dir=pth.parent))

    try:
        archive = tmpdir / "archive.zip"

        if verbose:
            print(f"Downloading {url}...")

        try:
            with urllib.request.urlopen(url, timeout=timeout) as f_src, open(archive, "wb") as f_out:
                total = f_src.headers.get('Content-Length')
                total = int(total) if total else None
                with tqdm.wrapattr(f_out, "write", total=total, mininterval=5, disable=not verbose) as f_dst:
                    shutil.copyfileobj(f_src, f_dst)
        except (OSError, ValueError) as e:
            raise FetchFailure(f"Could not download {url}: {e}") from e

        if checksum is not None and md5(archive) != checksum:
            raise FetchFailure(
                f"Archive downloaded from {url} is corrupted (MD5 mismatch). "
                "Please run again with --force-download."
            )

        extracted = tmpdir / pth.name
        try:
            with zipfile.ZipFile(archive) as zf:
                members = [m for m in zf.infolist() if not m.is_dir()]
                if len(members) != 1:
                    raise FetchFailure(f"Expected exactly one file in {url}, found {len(members)}")
                if verbose:
                    print(f"Extracting {members[0].filename} to {pth}...")
                with zf.open(members[0]) as f_src, open(extracted, "wb") as f_dst:
                    shutil.copyfileobj(f_src, f_dst)
        except (zipfile.BadZipFile, zlib.error, OSError, NotImplementedError, EOFError) as e:
            raise FetchFailure(f"Could not extract {url}: {e}") from e

        extracted.replace(pth)

    finally:
        shutil.rmtree(tmpdir, ignore_errors=True)

    return pth


def read(filepath: Union[str, pathlib.Path]):
    """
    Read the activity dataset into a table of observations.

    The file is a delimited text table with header `steps,date,interval`. Dates are
    `YYYY-MM-DD`, intervals are unpadded `H*100+M` codes and missing steps are marked
    with `NA` (or left empty). Compressed files (.gz, .zip, ...) are read transparently.

    Parameters:
    - filepath (str or pathlib.Path): The path to the dataset file.

    Returns:
    - pd.DataFrame: One row per observation with columns 'steps' (float, NaN if missing),
      'date' (datetime64), 'interval' (int) and 'weekday' (full weekday name).

    Raises:
    - ParseFailure: If a column is missing, or any row has an unparseable date, non-numeric
      or negative steps, an interval that is not a 5-minute time of day, or repeats a
      (date, interval) pair. A single bad row fails the whole load.

    Example:
        data = read('activity.csv')
    """

    try:
        raw = pd.read_csv(filepath, dtype=str, keep_default_na=False)
    except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError) as e:
        raise ParseFailure(f"Could not read {filepath}: {e}") from e

    raw.columns = raw.columns.str.strip()
    missing_cols = [c for c in COLUMNS if c not in raw.columns]
    if missing_cols:
        raise ParseFailure(f"{filepath} is missing column(s): {', '.join(missing_cols)}")

    steps_str = raw['steps'].str.strip()
    na = steps_str.isin(NA_VALUES)
    steps = pd.to_numeric(steps_str.mask(na), errors='coerce')
    bad = steps.isna() & ~na
    _check(bad, "non-numeric steps", raw, filepath)
    _check(~np.isfinite(steps) & ~na, "non-numeric steps", raw, filepath)
    _check(steps < 0, "negative steps", raw, filepath)
    _check(steps % 1 > 0, "fractional steps", raw, filepath)

    date = pd.to_datetime(raw['date'].str.strip(), format='%Y-%m-%d', errors='coerce')
    _check(date.isna(), "unparseable date", raw, filepath)

    interval = pd.to_numeric(raw['interval'].str.strip(), errors='coerce')
    _check(~interval.isin(INTERVALS), "invalid interval", raw, filepath)

    data = pd.DataFrame({
        'steps': steps.astype('float'),
        'date': date,
        'interval': interval.astype('int'),
    })
    _check(data.duplicated(['date', 'interval']), "duplicate (date, interval)", raw, filepath)

    data['weekday'] = data['date'].dt.day_name()

    return data


def _check(bad, what, raw, filepath):
    """ Raise ParseFailure listing the offending file lines, if any """
    if not bad.any():
        return
    idx = np.flatnonzero(bad.to_numpy())
    lines = ', '.join(str(i + 2) for i in idx[:5])  # +2: header line and 1-based numbering
    if len(idx) > 5:
        lines += f", ... ({len(idx)} rows)"
    example = raw.iloc[idx[0]].to_dict()
    raise ParseFailure(f"{filepath}: {what} at line(s) {lines}, e.g. {example}")


def read_info(data: pd.DataFrame):
    """
    Summarize high-level information about the observation table.

    Parameters:
    - data (pd.DataFrame): The observation table, as returned by `read`.

    Returns:
    - dict: A dictionary containing the number of rows and days, the date range and missingness.
    """

    n = len(data)
    nmissing = int(data['steps'].isna().sum())

    if n == 0:
        start_date = None
        end_date = None
    else:
        start_date = data['date'].min().strftime('%Y-%m-%d')
        end_date = data['date'].max().strftime('%Y-%m-%d')

    return {
        'NumRows': n,
        'NumDays': int(data['date'].nunique()),
        'StartDate': start_date,
        'EndDate': end_date,
        'MissingSteps': nmissing,
        'MissingSteps(%)': 100 * nmissing / n if n > 0 else np.nan,
    }


def interval_to_time(interval):
    """
    Convert `H*100+M` interval codes to time of day.

    Parameters:
    - interval (int or array-like): One or many interval codes, e.g. 5 or [0, 5, 2355].

    Returns:
    - pd.Timedelta for a scalar, a timedelta Series for a Series (index preserved),
      otherwise a TimedeltaIndex.

    Example:
        interval_to_time(835)  # Timedelta('0 days 08:35:00')
    """
    if np.isscalar(interval):
        interval = int(interval)
        return pd.Timedelta(hours=interval // 100, minutes=interval % 100)
    if not isinstance(interval, pd.Series):
        interval = np.asarray(interval, dtype='int')
    minutes = interval // 100 * 60 + interval % 100
    return pd.to_timedelta(minutes, unit='min')


def interval_to_str(interval):
    """ Format an interval code as HH:MM, e.g. 835 -> '08:35' """
    if interval is None or pd.isna(interval):
        return None
    interval = int(interval)
    return f"{interval // 100:02}:{interval % 100:02}"


def day_type(weekday):
    """
    Classify weekday names as 'weekend' (Saturday, Sunday) or 'weekday'.

    Accepts a single name or a Series of names; a Series is returned for the latter.
    """
    if isinstance(weekday, str):
        return 'weekend' if weekday in WEEKEND else 'weekday'
    weekday = pd.Series(weekday)
    return pd.Series(
        np.where(weekday.isin(WEEKEND), 'weekend', 'weekday'),
        index=weekday.index,
        name='daytype'
    )


def resolve_path(path):
    """ Return parent folder, file name and file extension """
    p = pathlib.Path(path)
    if not p.suffixes:
        return p.parent, p.name, ''
    extension = p.suffixes[0]
    filename = p.name.rsplit(extension)[0]
    dirname = p.parent
    return dirname, filename, extension


def md5(fname):
    hash_md5 = hashlib.md5()
    with open(fname, "rb") as f:
        for chunk in iter(lambda: f.read(4096), b""):
            hash_md5.update(chunk)
    return hash_md5.hexdigest()


class NpEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, np.integer):
            return int(obj)
        if isinstance(obj, np.floating):
            return float(obj)
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        if pd.isnull(obj):  # handles pandas NAType
            return np.nan
        return json.JSONEncoder.default(self, obj)
