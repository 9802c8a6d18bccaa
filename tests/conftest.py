"""
Pytest fixtures for stepreport test suite.

Generates synthetic activity monitoring data: step counts per 5-minute
interval over 8 days, with the first day entirely missing (as in the real
dataset) and a few scattered gaps.
"""
import pytest
import numpy as np
import pandas as pd
from pathlib import Path
import tempfile
import shutil
import zipfile


START_DATE = '2012-10-01'  # a Monday
N_DAYS = 8
INTERVALS = [h * 100 + m for h in range(24) for m in range(0, 60, 5)]


def generate_day_steps(peak_hour=8.5):
    """
    Generate one day of step counts, 288 values.

    Pattern:
    - Night (22:00-06:00): no steps
    - Day (06:00-22:00): light activity
    - Peak (1 hour from `peak_hour`): walking, far more steps than any other time
    """
    hours = np.arange(288) * 5 / 60
    steps = np.zeros(288)

    day = (hours >= 6) & (hours < 22)
    steps[day] = np.random.poisson(30, day.sum())

    peak = (hours >= peak_hour) & (hours < peak_hour + 1)
    steps[peak] += np.random.poisson(400, peak.sum())

    return steps


def generate_activity(start_date=START_DATE, n_days=N_DAYS, seed=42):
    """
    Generate raw activity records as they appear in the dataset file.

    Returns DataFrame with columns steps (float, NaN if missing), date (YYYY-MM-DD string)
    and interval (H*100+M code).
    """
    np.random.seed(seed)

    dates = pd.date_range(start_date, periods=n_days, freq='D')
    frames = []
    for i, date in enumerate(dates):
        steps = generate_day_steps()
        if i == 0:
            steps[:] = np.nan  # device not worn on the first day
        frames.append(pd.DataFrame({
            'steps': steps,
            'date': date.strftime('%Y-%m-%d'),
            'interval': INTERVALS,
        }))
    df = pd.concat(frames, ignore_index=True)

    # Scattered gaps: 12:00-12:55 on the fourth day, and every 50th record
    gap = (df['date'] == dates[3].strftime('%Y-%m-%d')) & df['interval'].between(1200, 1255)
    df.loc[gap, 'steps'] = np.nan
    df.loc[df.index[7::50], 'steps'] = np.nan

    return df


@pytest.fixture(scope="session")
def activity_raw():
    """ Raw synthetic records, see `generate_activity` """
    return generate_activity()


@pytest.fixture(scope="session")
def activity_csv(activity_raw):
    """
    Write the synthetic records to an activity.csv file, missing steps as NA.
    Returns path to the file (cleaned up after session).
    """
    tmpdir = tempfile.mkdtemp()
    csv_path = Path(tmpdir) / "activity.csv"

    activity_raw.to_csv(csv_path, index=False, na_rep='NA', float_format='%.0f')

    yield csv_path

    shutil.rmtree(tmpdir)


@pytest.fixture(scope="session")
def activity_zip(activity_csv):
    """
    Zip archive containing the activity.csv file, as served by the remote source.
    Returns path to the archive (cleaned up after session).
    """
    tmpdir = tempfile.mkdtemp()
    zip_path = Path(tmpdir) / "activity.zip"

    with zipfile.ZipFile(zip_path, 'w') as zf:
        zf.write(activity_csv, arcname="activity.csv")

    yield zip_path

    shutil.rmtree(tmpdir)


@pytest.fixture(scope="session")
def activity_data(activity_raw):
    """
    Observation table for the synthetic records, in the shape returned by utils.read.
    """
    data = pd.DataFrame({
        'steps': activity_raw['steps'].astype('float'),
        'date': pd.to_datetime(activity_raw['date']),
        'interval': activity_raw['interval'].astype('int'),
    })
    data['weekday'] = data['date'].dt.day_name()
    return data


@pytest.fixture(scope="function")
def two_day_data():
    """
    Two days, three intervals each:
    - Friday 2012-10-05: all missing
    - Saturday 2012-10-06: 10, missing, 20
    """
    data = pd.DataFrame({
        'steps': [np.nan, np.nan, np.nan, 10, np.nan, 20],
        'date': pd.to_datetime(['2012-10-05'] * 3 + ['2012-10-06'] * 3),
        'interval': [0, 5, 10] * 2,
    })
    data['weekday'] = data['date'].dt.day_name()
    return data


@pytest.fixture(scope="function")
def temp_dir():
    """Create a temporary directory for test outputs, cleaned up after test."""
    tmpdir = tempfile.mkdtemp()
    yield Path(tmpdir)
    shutil.rmtree(tmpdir)
