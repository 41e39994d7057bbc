import pandas as pd
import numpy as np
from scipy import stats

DATA_FILE = 'hate_crime.csv'
OUTPUT_DIR = 'output/'
MULTIPLE_SEP = ';'
TOP_K = 10

DATE_COLUMN = 'incident_date'
CATEGORY_COLUMNS = ['bias_desc', 'location_name']
REQUIRED_COLUMNS = [DATE_COLUMN] + CATEGORY_COLUMNS

MIN_TREND_YEARS = 3

PRESIDENTS = {
    1991: 'Bush Sr',
    1992: 'Bush Sr',
    1993: 'Clinton',
    1994: 'Clinton',
    1995: 'Clinton',
    1996: 'Clinton',
    1997: 'Clinton',
    1998: 'Clinton',
    1999: 'Clinton',
    2000: 'Clinton',
    2001: 'Bush Jr',
    2002: 'Bush Jr',
    2003: 'Bush Jr',
    2004: 'Bush Jr',
    2005: 'Bush Jr',
    2006: 'Bush Jr',
    2007: 'Bush Jr',
    2008: 'Bush Jr',
    2009: 'Obama',
    2010: 'Obama',
    2011: 'Obama',
    2012: 'Obama',
    2013: 'Obama',
    2014: 'Obama',
    2015: 'Obama',
    2016: 'Obama',
    2017: 'Trump',
    2018: 'Trump',
    2019: 'Trump',
    2020: 'Trump',
    2021: 'Biden',
    2022: 'Biden',
    2023: 'Biden',
    2024: 'Biden',
}

PARTIES = {
    'Bush Sr': 'Republican',
    'Clinton': 'Democrat',
    'Bush Jr': 'Republican',
    'Obama': 'Democrat',
    'Trump': 'Republican',
    'Biden': 'Democrat',
}


class HateCrimeAnalysisError(Exception):
    """Base class for analysis errors"""


class DataUnavailable(HateCrimeAnalysisError):
    """The incident source could not be read or lacks required columns"""


class InsufficientData(HateCrimeAnalysisError):
    """Not enough usable rows for an analysis; the caller may skip it"""


def _read_incidents(handle, required_columns):
    try:
        df = pd.read_csv(handle, dtype={col: 'string' for col in required_columns})
    except OSError as e:
        raise DataUnavailable(f"Could not read incident data: {e}") from e
    except (UnicodeDecodeError, ValueError) as e:
        # ParserError and EmptyDataError are ValueError subclasses
        raise DataUnavailable(f"Could not parse incident data: {e}") from e

    missing_columns = [col for col in required_columns if col not in df.columns]
    if missing_columns:
        raise DataUnavailable(f"Incident data is missing required columns: {', '.join(missing_columns)}")

    #blank and whitespace-only labels are missing values, not categories
    for col in required_columns:
        df[col] = df[col].str.strip().replace('', pd.NA)
    return df


def load_incidents(source, required_columns=REQUIRED_COLUMNS):
    """
    Reads the incident CSV into a DataFrame, one row per incident.

    `source` is a path or an open text handle. Core columns are read as the
    nullable string dtype so missing values are pd.NA. No rows are dropped.
    Raises DataUnavailable when the source cannot be read.
    """
    if hasattr(source, 'read'):
        return _read_incidents(source, required_columns)

    try:
        with open(source, 'r', encoding='utf-8', newline='') as f:
            return _read_incidents(f, required_columns)
    except OSError as e:
        raise DataUnavailable(f"Could not read {source}: {e}") from e


def parse_incident_dates(raw_dates):
    """Parses each date on its own so one dataset may mix formats; malformed dates become NaT"""
    return pd.to_datetime(raw_dates, errors='coerce', format='mixed')


def count_by_year(df, date_column=DATE_COLUMN):
    """
    Counts incidents per calendar year of `date_column`.

    Rows with a missing or unparseable date are excluded and counted, so
    yearly_counts['count'].sum() == total_rows - excluded.
    """
    raw_dates = df[date_column]
    dates = parse_incident_dates(raw_dates)

    missing_dates = int(raw_dates.isna().sum())
    unparseable_dates = int((dates.isna() & raw_dates.notna()).sum())

    years = dates.dropna().dt.year.astype(int)
    yearly = years.value_counts().sort_index()
    yearly_counts = pd.DataFrame({'year': yearly.index.astype(int), 'count': yearly.values.astype(int)})

    return {
        'yearly_counts': yearly_counts,
        'excluded': missing_dates + unparseable_dates,
        'missing_dates': missing_dates,
        'unparseable_dates': unparseable_dates,
        'total_rows': len(df),
    }


def _category_values(df, field, split_multiple=False):
    values = df[field]
    if split_multiple:
        #when multiple values are listed, split them and count each separately
        values = values.str.split(MULTIPLE_SEP).explode().str.strip().replace('', pd.NA)
    return values


def count_missing(df, field, split_multiple=False):
    """Total, missing and non-null value counts for a categorical field"""
    values = _category_values(df, field, split_multiple)
    missing = int(values.isna().sum())
    return {
        'total': len(values),
        'missing': missing,
        'non_null': len(values) - missing,
    }


def top_categories(df, field, k=TOP_K, split_multiple=False):
    """
    Ranks the non-null values of `field` by frequency and keeps the top `k`.

    Ties keep the order in which values first appear in the input. Missing
    values are not ranked; use count_missing to retrieve how many there were.
    """
    if k < 1:
        raise ValueError(f"k must be at least 1, got {k}")

    values = _category_values(df, field, split_multiple).dropna()
    if values.empty:
        raise InsufficientData(f"No non-null values in '{field}'")

    first_seen = pd.Index(values.unique())
    counts = values.value_counts().reindex(first_seen)
    counts = counts.sort_values(ascending=False, kind='stable').head(k)

    return pd.DataFrame({
        'category': counts.index.astype(str),
        'count': counts.values.astype(int),
        'rank': np.arange(1, len(counts) + 1),
    })


def category_subset(categories):
    """Normalizes a category subset to a list; None or an empty sequence means every category"""
    if categories is None:
        return []
    if isinstance(categories, str):
        raise TypeError(f"categories must be a sequence of labels, not the string {categories!r}")
    return list(categories)


def share_by_year_and_category(df, field, categories=None, date_column=DATE_COLUMN):
    """
    Share of each year's incidents that falls in each category of `field`.

    The denominator for a year is the number of incidents in that year with a
    parseable date and a non-null `field`; incidents missing `field` are left
    out of the denominator rather than counted as another category. With no
    `categories` every observed value is reported and shares for a year sum
    to 1. Only (year, category) pairs with at least one incident are emitted.

    Rows left out of every denominator are counted: `excluded_dates` for a
    missing or unparseable date, `excluded_missing_field` for a valid date
    with a null `field`.
    """
    subset = category_subset(categories)

    dates = parse_incident_dates(df[date_column])
    frame = pd.DataFrame({'year': dates.dt.year, 'category': df[field]})
    bad_date = frame['year'].isna()
    missing_field = ~bad_date & frame['category'].isna()

    frame = frame[~bad_date & ~missing_field].copy()
    if frame.empty:
        raise InsufficientData(f"No incidents with both a valid date and a non-null '{field}'")

    frame['year'] = frame['year'].astype(int)
    frame['category'] = frame['category'].astype(str)
    year_totals = frame.groupby('year').size()

    if subset:
        frame = frame[frame['category'].isin(subset)]

    shares = frame.groupby(['year', 'category']).size().reset_index(name='count')
    shares['share'] = shares['count'] / shares['year'].map(year_totals)

    excluded_dates = int(bad_date.sum())
    excluded_missing_field = int(missing_field.sum())
    return {
        'shares': shares.sort_values(['year', 'category'], kind='stable').reset_index(drop=True),
        'year_totals': pd.DataFrame({'year': year_totals.index.astype(int), 'total': year_totals.values.astype(int)}),
        'excluded': excluded_dates + excluded_missing_field,
        'excluded_dates': excluded_dates,
        'excluded_missing_field': excluded_missing_field,
        'total_rows': len(df),
    }


def fit_linear_trend(yearly_counts):
    """
    Ordinary least squares fit of yearly count against year.

    Years are measured from the first observed year (`base_year`), so the
    intercept is the fitted count at that year. The slope p-value is the
    classical two-sided t-test. It assumes independent residuals: yearly
    hate crime counts are serially correlated, so the p-value overstates
    significance and should be read as descriptive.
    """
    years = yearly_counts['year'].astype(int)
    counts = yearly_counts['count'].astype(float)

    n_years = years.nunique()
    if n_years < MIN_TREND_YEARS:
        raise InsufficientData(f"Trend fit needs at least {MIN_TREND_YEARS} distinct years, got {n_years}")

    base_year = int(years.min())
    fit = stats.linregress(years - base_year, counts)

    return {
        'slope': float(fit.slope),
        'intercept': float(fit.intercept),
        'p_value': float(fit.pvalue),
        'r_squared': float(fit.rvalue ** 2),
        'std_err': float(fit.stderr),
        'base_year': base_year,
        'n_years': int(n_years),
    }


def summarize_yearly_counts(yearly_counts):
    """
    Mean, median, quartiles, IQR and sample standard deviation of yearly counts.

    Quartiles use linear interpolation between order statistics.
    """
    if isinstance(yearly_counts, pd.DataFrame):
        counts = yearly_counts['count'].astype(float)
    else:
        counts = pd.Series(list(yearly_counts), dtype=float)

    if counts.empty:
        raise InsufficientData("No yearly counts to summarize")

    q1 = counts.quantile(0.25, interpolation='linear')
    q3 = counts.quantile(0.75, interpolation='linear')
    return {
        'mean': float(counts.mean()),
        'median': float(counts.median()),
        'q1': float(q1),
        'q3': float(q3),
        'interquartile_range': float(q3 - q1),
        'standard_deviation': float(counts.std(ddof=1)),
        'n_years': len(counts),
    }


def rolling_trend(yearly_counts, window=3):
    """Moving average and volatility (rolling sample std) of yearly counts"""
    if window < 2:
        raise ValueError(f"window must be at least 2, got {window}")
    if yearly_counts.empty:
        raise InsufficientData("No yearly counts for a rolling trend")

    trend = yearly_counts[['year', 'count']].sort_values('year').reset_index(drop=True)
    counts = trend['count'].astype(float)
    trend['moving_average'] = counts.rolling(window=window).mean()
    trend['volatility'] = counts.rolling(window=window).std()
    return trend


def count_by_presidential_term(yearly_counts):
    """Yearly counts grouped by presidential administration, in chronological order"""
    df_years = yearly_counts[yearly_counts['year'].isin(list(PRESIDENTS))].copy()
    if df_years.empty:
        raise InsufficientData("No yearly counts fall within a known presidential term")

    df_years['president'] = df_years['year'].map(PRESIDENTS)
    df_years['party'] = df_years['president'].map(PARTIES)

    terms = df_years.groupby(['president', 'party'], sort=False).agg(
        first_year=('year', 'min'),
        last_year=('year', 'max'),
        n_years=('year', 'size'),
        count=('count', 'sum'),
    ).reset_index()
    terms['mean_per_year'] = terms['count'] / terms['n_years']
    return terms.sort_values('first_year', kind='stable').reset_index(drop=True)


def _unavailable(name, error):
    print(f"{name} unavailable: {error}")
    return {'status': 'unavailable', 'reason': str(error)}


def analyze_incidents(df, top_k=TOP_K, share_field='bias_desc', share_categories=None):
    """
    Runs every analysis over one incident table.

    An analysis without enough data is recorded as unavailable and the
    others still run.
    """
    print(f"Analyzing {len(df):,} incidents...")
    share_categories = category_subset(share_categories)
    results = {}

    yearly = count_by_year(df)
    results['yearly'] = yearly
    if yearly['excluded']:
        print(f"Excluded {yearly['excluded']:,} rows with missing or unparseable {DATE_COLUMN} "
              f"({yearly['missing_dates']:,} missing, {yearly['unparseable_dates']:,} unparseable)")
    yearly_counts = yearly['yearly_counts']

    analyses = [
        ('summary', 'Descriptive statistics', lambda: summarize_yearly_counts(yearly_counts)),
        ('trend', 'Linear trend', lambda: fit_linear_trend(yearly_counts)),
        ('rolling', 'Rolling trend', lambda: rolling_trend(yearly_counts)),
        ('terms', 'Presidential terms', lambda: count_by_presidential_term(yearly_counts)),
        ('top_bias', 'Top bias motivations',
         lambda: top_categories(df, 'bias_desc', top_k, split_multiple=True)),
        ('top_location', 'Top locations',
         lambda: top_categories(df, 'location_name', top_k, split_multiple=True)),
        ('shares', 'Yearly category shares',
         lambda: share_by_year_and_category(df, share_field, share_categories)),
    ]
    for key, name, analysis in analyses:
        try:
            results[key] = analysis()
        except InsufficientData as e:
            results[key] = _unavailable(name, e)

    shares = results['shares']
    if not is_unavailable(shares) and shares['excluded']:
        print(f"Excluded {shares['excluded']:,} rows from {share_field} shares "
              f"({shares['excluded_dates']:,} without a valid {DATE_COLUMN}, "
              f"{shares['excluded_missing_field']:,} missing {share_field})")

    results['bias_missing'] = count_missing(df, 'bias_desc', split_multiple=True)
    results['location_missing'] = count_missing(df, 'location_name', split_multiple=True)
    results['share_field'] = share_field
    results['share_categories'] = share_categories
    return results


def is_unavailable(result):
    return isinstance(result, dict) and result.get('status') == 'unavailable'
