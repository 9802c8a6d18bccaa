import warnings
import os
import time
import argparse
import json
import re
import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import matplotlib.dates as mdates

from stepreport import utils
from stepreport import __version__
from stepreport import __data_url__

warnings.filterwarnings('ignore', message='Mean of empty slice')  # shut .mean() warning when all-NaN

# arbitrary day used to place times of day on a datetime axis
ORIGIN = pd.Timestamp('2000-01-01')


def main():

    parser = argparse.ArgumentParser(
        description="A tool to produce an exploratory report of personal activity (step count) data",
        add_help=True
    )
    parser.add_argument("filepath", nargs="?", default="activity.csv",
                        help="Enter dataset file to be processed. It is downloaded if missing. Default: 'activity.csv'")
    parser.add_argument("--outdir", "-o", help="Enter folder location to save output files", default="outputs/")
    parser.add_argument("--url", "-u", help="Enter location of the zipped dataset to download", default=__data_url__)
    parser.add_argument("--force-download", action="store_true", help="Force download of dataset file")
    parser.add_argument("--md5", help="Expected MD5 checksum of the downloaded archive. Default: None (no check)",
                        type=str, default=None)
    parser.add_argument("--timeout", help="Network timeout in seconds for the download. Default: 60",
                        type=float, default=60)
    parser.add_argument("--start",
                        help=("Specify a start date for the data to be processed (otherwise, process all). "
                              "Pass values as strings, e.g.: '2012-10-01'. Default: None"),
                        type=str, default=None)
    parser.add_argument("--end",
                        help=("Specify an end date for the data to be processed (otherwise, process all). "
                              "Pass values as strings, e.g.: '2012-11-30'. Default: None"),
                        type=str, default=None)
    parser.add_argument('--quiet', '-q', action='store_true', help='Suppress output')
    args = parser.parse_args()

    before = time.time()

    verbose = not args.quiet

    # Make sure the dataset is available
    utils.fetch(
        args.url,
        args.filepath,
        force_download=args.force_download,
        checksum=args.md5,
        timeout=args.timeout,
        verbose=verbose
    )

    # Output paths
    basename = utils.resolve_path(args.filepath)[1]
    outdir = os.path.join(args.outdir, basename)
    os.makedirs(outdir, exist_ok=True)

    # Info.json contains high-level summary of the data and results
    info = {}
    info['StepReportVersion'] = __version__
    info['StepReportArgs'] = vars(args)
    info['Filename'] = args.filepath

    # Load file
    if verbose:
        print("Loading data...")
    data = utils.read(args.filepath)

    # Set start/end dates, if given
    if args.start is not None:
        data = data[data['date'] >= pd.Timestamp(args.start)]
    if args.end is not None:
        data = data[data['date'] <= pd.Timestamp(args.end)]
    if len(data) == 0:
        warnings.warn("No data left to analyse")

    info.update(utils.read_info(data))

    # Steps per day, missing values ignored
    totals = daily_totals(data)
    steps_summary = summarize_daily(totals)
    info['TotalSteps'] = steps_summary['total_steps']
    info['StepsDayAvg'] = steps_summary['avg_steps']
    info['StepsDayMed'] = steps_summary['med_steps']
    info['StepsDayMin'] = steps_summary['min_steps']
    info['StepsDayMax'] = steps_summary['max_steps']

    # Average steps per 5-minute interval, by day of week
    info.update({f'StepsAvg_{day}': v for day, v in weekday_averages(data).items()})

    # Average daily activity pattern
    averages = interval_averages(data)
    peak = max_interval(averages)
    info['MaxInterval'] = utils.interval_to_str(peak['interval'])
    info['MaxIntervalSteps'] = peak['steps']

    # Imputation
    imputed, global_mean = impute_missing(data)
    info['ImputedValue'] = global_mean
    info['MissingStepsAfterImputation'] = count_missing(imputed)

    totals_imputed = daily_totals_imputed(imputed)
    steps_summary_imp = summarize_daily(totals_imputed)
    info['TotalStepsImputed'] = steps_summary_imp['total_steps']
    info['StepsDayAvgImputed'] = steps_summary_imp['avg_steps']
    info['StepsDayMedImputed'] = steps_summary_imp['med_steps']
    info['StepsDayMinImputed'] = steps_summary_imp['min_steps']
    info['StepsDayMaxImputed'] = steps_summary_imp['max_steps']

    # Weekday vs weekend activity patterns
    daytype_avgs = daytype_averages(imputed, by_weekday=False)
    for label, avgs in daytype_avgs.groupby('daytype'):
        info[f'StepsAvgImputed_{label.capitalize()}'] = avgs['steps'].mean()
        daytype_peak = max_interval(avgs)
        info[f'MaxInterval_{label.capitalize()}'] = utils.interval_to_str(daytype_peak['interval'])
        info[f'MaxIntervalSteps_{label.capitalize()}'] = daytype_peak['steps']

    # Save Info.json
    with open(f"{outdir}/{basename}-Info.json", 'w') as f:
        json.dump(info, f, indent=4, cls=utils.NpEncoder)

    # Save daily data
    daily = pd.concat([
        totals.rename('Steps'),
        totals_imputed.rename('StepsImputed'),
    ], axis=1)
    daily.index.name = 'Date'
    daily.reset_index(inplace=True)
    daily.insert(0, 'Filename', info['Filename'])  # add filename for reference
    daily.to_csv(f"{outdir}/{basename}-Daily.csv.gz", index=False)

    # Save interval data
    interval = averages.assign(time=averages['interval'].map(utils.interval_to_str))
    interval.columns = ['Interval', 'Time', 'StepsAvg']
    interval.to_csv(f"{outdir}/{basename}-Interval.csv.gz", index=False)
    del interval  # free memory

    # Save weekday/weekend interval data
    daytype = daytype_avgs.assign(time=daytype_avgs['interval'].map(utils.interval_to_str))
    daytype.columns = ['DayType', 'Interval', 'Time', 'StepsAvg']
    daytype.to_csv(f"{outdir}/{basename}-DayType.csv.gz", index=False)
    del daytype  # free memory

    # Print
    print("\nSummary\n-------")
    print(json.dumps(
        {k: v for k, v in info.items() if not re.search(r'_Weekend|_Weekday|StepsAvg_\w+day|StepReportArgs', k)},
        indent=4, cls=utils.NpEncoder
    ))
    print("\nDaily Steps\n-----------")
    print(daily.set_index('Date').drop(columns='Filename'))

    if verbose:
        print("\nPlotting...")
    fig = plot_daily_hist(totals, title=f"{basename}: total steps per day")
    fig.savefig(f"{outdir}/{basename}-DailyHist.png", bbox_inches='tight')
    plt.close(fig)
    fig = plot_daily_hist(totals_imputed, title=f"{basename}: total steps per day (missing values imputed)")
    fig.savefig(f"{outdir}/{basename}-DailyHistImputed.png", bbox_inches='tight')
    plt.close(fig)
    fig = plot_interval_averages(averages, peak, title=f"{basename}: average daily activity pattern")
    fig.savefig(f"{outdir}/{basename}-Interval.png", bbox_inches='tight')
    plt.close(fig)
    fig = plot_daytype_averages(daytype_avgs, title=f"{basename}: weekday vs weekend activity patterns")
    fig.savefig(f"{outdir}/{basename}-DayType.png", bbox_inches='tight')
    plt.close(fig)

    # Report
    with open(f"{outdir}/{basename}-Report.md", 'w') as f:
        f.write(render_report(info, basename))

    print("\nOutput files saved in:", outdir)

    after = time.time()
    print(f"Done! ({round(after - before,2)}s)")


def daily_totals(data: pd.DataFrame):
    """
    Total number of steps taken per day.

    Missing values are left out of the sum, so a day with no recorded steps at all
    totals 0 rather than NaN.

    Parameters:
    - data (pd.DataFrame): The observation table with columns 'date' and 'steps'.

    Returns:
    - pd.Series: Total steps indexed by date. Only dates present in `data` appear.

    Example:
        totals = daily_totals(data)
    """
    return data.groupby('date')['steps'].sum()


def weekday_averages(data: pd.DataFrame):
    """
    Mean steps per 5-minute interval for each day of the week, missing values excluded.

    Parameters:
    - data (pd.DataFrame): The observation table with columns 'date' and 'steps'
      (and optionally 'weekday').

    Returns:
    - pd.Series: Mean steps indexed by weekday name, Monday first. Only weekdays
      present in `data` appear; a weekday with no recorded steps is NaN.
    """
    avgs = data.groupby(_weekday(data))['steps'].mean()
    return avgs.reindex([d for d in utils.WEEKDAYS if d in avgs.index]).rename_axis('weekday')


def summarize_daily(totals: pd.Series):
    """
    Summarize a series of daily step totals.

    Parameters:
    - totals (pd.Series): Daily step totals, e.g. from `daily_totals`.

    Returns:
    - dict: A dictionary with the total, mean, median, min and max daily steps, and the number of days.
    """
    return {
        'total_steps': totals.sum(),
        'avg_steps': totals.mean(),
        'med_steps': totals.median(),
        'min_steps': totals.min(),
        'max_steps': totals.max(),
        'num_days': len(totals),
    }


def interval_averages(data: pd.DataFrame):
    """
    Average daily activity pattern: mean steps per 5-minute interval across all days.

    Parameters:
    - data (pd.DataFrame): The observation table with columns 'interval' and 'steps'.

    Returns:
    - pd.DataFrame: One row per interval of the day (288 rows, 00:00 to 23:55) in
      chronological order, with columns 'interval', 'time' (time of day as a Timedelta)
      and 'steps' (mean, missing values excluded). Intervals without any recorded
      steps are NaN.

    Example:
        averages = interval_averages(data)
    """
    avgs = (
        data
        .groupby('interval')['steps'].mean()
        .reindex(utils.INTERVALS)
        .rename_axis('interval')
        .reset_index()
    )
    avgs.insert(1, 'time', utils.interval_to_time(avgs['interval']))
    return avgs.sort_values('time', kind='stable').reset_index(drop=True)


def max_interval(averages: pd.DataFrame):
    """
    Find the interval with the highest average number of steps.

    Parameters:
    - averages (pd.DataFrame): Chronologically ordered interval averages with columns
      'interval', 'time' and 'steps', e.g. from `interval_averages`.

    Returns:
    - dict: The 'interval', 'time' and 'steps' of the peak. Ties go to the earliest
      interval. If every average is NaN, 'interval' and 'time' are None and 'steps' is NaN.
    """
    if averages['steps'].isna().all():
        return {'interval': None, 'time': None, 'steps': np.nan}
    row = averages.loc[averages['steps'].idxmax()]
    return {
        'interval': int(row['interval']),
        'time': row['time'],
        'steps': row['steps'],
    }


def impute_missing(data: pd.DataFrame):
    """
    Fill in missing step values with the mean of all recorded values.

    The mean is computed once on the input table and used for every missing value.
    It is not rounded. The input table is not modified.

    Parameters:
    - data (pd.DataFrame): The observation table with a 'steps' column.

    Returns:
    - tuple: A tuple containing:
        - imputed (pd.DataFrame): A copy of `data` without missing steps.
        - global_mean (float): The value used for imputation (NaN if no steps were recorded,
          in which case nothing is filled).

    Example:
        imputed, global_mean = impute_missing(data)
    """
    global_mean = data['steps'].mean()
    imputed = data.copy()
    if not pd.isna(global_mean):
        imputed['steps'] = imputed['steps'].fillna(global_mean)
    return imputed, global_mean


def daily_totals_imputed(imputed: pd.DataFrame):
    """ Total number of steps taken per day, on a table with imputed values """
    if imputed['steps'].isna().any():
        warnings.warn("Table still contains missing values, they are left out of the totals")
    return daily_totals(imputed)


def daytype_averages(imputed: pd.DataFrame, by_weekday: bool = True):
    """
    Mean steps per 5-minute interval on weekdays vs weekends.

    Parameters:
    - imputed (pd.DataFrame): The (imputed) observation table with columns 'date',
      'interval' and 'steps'.
    - by_weekday (bool, optional): Whether to also split by day of week, i.e. group by
      (daytype, weekday, interval) rather than (daytype, interval). Defaults to True.

    Returns:
    - pd.DataFrame: One row per group with columns 'daytype' ('weekday' or 'weekend'),
      'weekday' (only if `by_weekday`), 'interval', 'time' and 'steps'.

    Example:
        # the weekday/weekend panel plot
        avgs = daytype_averages(imputed, by_weekday=False)
    """
    weekday = pd.Categorical(_weekday(imputed), categories=utils.WEEKDAYS)
    data = imputed.assign(
        daytype=utils.day_type(_weekday(imputed)),
        weekday=weekday,
    )
    keys = ['daytype', 'weekday', 'interval'] if by_weekday else ['daytype', 'interval']
    avgs = data.groupby(keys, observed=True)['steps'].mean().reset_index()
    avgs.insert(len(keys), 'time', utils.interval_to_time(avgs['interval']))
    return avgs


def count_missing(data: pd.DataFrame):
    """ Number of missing step values """
    return int(data['steps'].isna().sum())


def _weekday(data):
    if 'weekday' in data.columns:
        return data['weekday'].astype(str)
    return data['date'].dt.day_name()


def plot_daily_hist(totals, title=None, bins=20):
    """
    Histogram of total steps per day, with the mean and median marked.

    Parameters:
    - totals: pandas Series of daily step totals.

    Returns:
    - fig: matplotlib figure object
    """

    totals = totals.dropna()

    fig, ax = plt.subplots(figsize=(8, 5))

    ax.hist(totals, bins=bins, edgecolor='white', label='days')

    if len(totals) > 0:
        ax.axvline(totals.mean(), color='C1', linestyle='--', label=f'mean: {totals.mean():.0f}')
        ax.axvline(totals.median(), color='C2', linestyle=':', label=f'median: {totals.median():.0f}')

    ax.set_xlabel('steps/day')
    ax.set_ylabel('days')
    ax.grid(True)
    ax.legend(loc='upper right')

    if title:
        ax.set_title(title)

    fig.tight_layout()

    return fig


def plot_interval_averages(averages, peak=None, title=None):
    """
    Time series of average steps per 5-minute interval, with the peak interval annotated.

    Parameters:
    - averages: pandas DataFrame with 'time' and 'steps' columns, e.g. from `interval_averages`.
    - peak: dict as returned by `max_interval`. Computed from `averages` if None.

    Returns:
    - fig: matplotlib figure object
    """

    if peak is None:
        peak = max_interval(averages)

    fig, ax = plt.subplots(figsize=(10, 5))

    ax.plot(ORIGIN + averages['time'], averages['steps'], label='avg steps/5min')

    if peak['interval'] is not None:
        x = ORIGIN + peak['time']
        y = peak['steps']
        ax.plot(x, y, 'o', color='C3')
        # two labels: which interval, and its average
        ax.annotate(f"max interval: {utils.interval_to_str(peak['interval'])}",
                    xy=(x, y), xytext=(10, -4), textcoords='offset points')
        ax.annotate(f"max average: {y:.1f} steps",
                    xy=(x, y), xytext=(10, -18), textcoords='offset points')

    # Formatting the x-axis to show hours and minutes
    ax.xaxis.set_major_locator(mdates.HourLocator(interval=2))
    ax.xaxis.set_minor_locator(mdates.MinuteLocator(byminute=[0, 30]))
    ax.xaxis.set_major_formatter(mdates.DateFormatter("%H:%M"))

    # Set x-axis limits to start at 00:00 and end at 24:00
    ax.set_xlim(ORIGIN, ORIGIN + pd.DateOffset(days=1))

    ax.tick_params(axis='x', rotation=45)
    ax.set_xlabel('time of day')
    ax.set_ylabel('avg steps/5min')
    ax.grid(True)
    ax.legend(loc='upper left')

    if title:
        ax.set_title(title)

    fig.tight_layout()

    return fig


def plot_daytype_averages(averages, title=None):
    """
    Two-panel time series of average steps per 5-minute interval, weekdays vs weekends.

    Parameters:
    - averages: pandas DataFrame with 'daytype', 'time' and 'steps' columns, as returned
      by `daytype_averages(..., by_weekday=False)`.

    Returns:
    - fig: matplotlib figure object
    """

    fig, axs = plt.subplots(2, 1, figsize=(10, 7), sharex=True, sharey=True)

    for ax, daytype in zip(axs, ('weekday', 'weekend')):
        y = averages[averages['daytype'] == daytype]
        ax.plot(ORIGIN + y['time'], y['steps'], label='avg steps/5min')
        ax.set_ylabel('avg steps/5min')
        ax.set_title(daytype)
        ax.grid(True)

    axs[-1].xaxis.set_major_locator(mdates.HourLocator(interval=2))
    axs[-1].xaxis.set_major_formatter(mdates.DateFormatter("%H:%M"))
    axs[-1].set_xlim(ORIGIN, ORIGIN + pd.DateOffset(days=1))
    axs[-1].tick_params(axis='x', rotation=45)
    axs[-1].set_xlabel('time of day')

    if title:
        fig.suptitle(title)

    fig.tight_layout()

    return fig


def render_report(info, basename):
    """
    Render the narrative report as Markdown.

    Parameters:
    - info (dict): Summary information, as saved to Info.json.
    - basename (str): Base name of the output files, used to link the plots.

    Returns:
    - str: The report text.
    """

    def _fmt(x, digits=0):
        if x is None or pd.isna(x):
            return "NA"
        return f"{x:,.{digits}f}"

    weekday_rows = "\n".join(
        f"| {day} | {_fmt(info[f'StepsAvg_{day}'], 2)} |"
        for day in utils.WEEKDAYS if f'StepsAvg_{day}' in info
    )

    return f"""# Personal activity report: {basename}

Generated by stepreport {info['StepReportVersion']}.

## Loading the data

The dataset `{info['Filename']}` holds {info['NumRows']:,} observations of the number of
steps taken in 5-minute intervals, over {info['NumDays']} days from {info['StartDate']}
to {info['EndDate']}.

## What is the mean total number of steps taken per day?

Missing values are ignored.

![Total steps per day]({basename}-DailyHist.png)

- Mean: {_fmt(info['StepsDayAvg'], 2)} steps/day
- Median: {_fmt(info['StepsDayMed'], 2)} steps/day

Average steps per 5-minute interval by day of week:

| Day | Steps |
|-----|-------|
{weekday_rows}

## What is the average daily activity pattern?

![Average daily activity pattern]({basename}-Interval.png)

The 5-minute interval starting at {info['MaxInterval'] or 'NA'} contains the maximum
number of steps on average across all days, {_fmt(info['MaxIntervalSteps'], 2)} steps.

## Imputing missing values

There are {info['MissingSteps']:,} missing values ({_fmt(info['MissingSteps(%)'], 1)}% of
observations). Each is replaced with the mean of all recorded values,
{_fmt(info['ImputedValue'], 4)} steps.

![Total steps per day, imputed]({basename}-DailyHistImputed.png)

- Mean: {_fmt(info['StepsDayAvgImputed'], 2)} steps/day
- Median: {_fmt(info['StepsDayMedImputed'], 2)} steps/day

## Are there differences in activity patterns between weekdays and weekends?

![Weekday vs weekend activity patterns]({basename}-DayType.png)

- Weekday: {_fmt(info.get('StepsAvgImputed_Weekday'), 2)} steps/5min on average
- Weekend: {_fmt(info.get('StepsAvgImputed_Weekend'), 2)} steps/5min on average
"""


if __name__ == '__main__':
    main()
