import io

import matplotlib

matplotlib.use('Agg')

import numpy as np  # noqa: E402
import pandas as pd  # noqa: E402
import pytest  # noqa: E402

from hate_crime_analysis import load_incidents  # noqa: E402

INCIDENTS_CSV = """incident_id,data_year,state_abbr,incident_date,bias_desc,location_name,total_individual_victims
1,2018,NY,2018-03-01,Anti-Black or African American,Residence/Home,1
2,2018,NY,2018-06-12,Anti-Jewish,Church/Synagogue/Temple/Mosque,0
3,2018,CA,2018-07-04,Anti-Black or African American,Highway/Road/Alley/Street/Sidewalk,2
4,2019,CA,2019-01-15,Anti-Jewish,Residence/Home,1
5,2019,TX,2019-02-20,,Residence/Home,1
6,2019,TX,2019-05-05,Anti-Gay (Male);Anti-Black or African American,,2
7,2020,WA,2020-08-30,Anti-Asian,Residence/Home,1
8,2020,WA,not a date,Anti-Asian,Parking/Drop Lot/Garage/Rest Area,1
9,2020,OR,,Anti-White,Residence/Home,1
10,2020,OR,2020-11-11,Anti-Asian,   ,3
"""


@pytest.fixture
def incidents_csv():
    return INCIDENTS_CSV


@pytest.fixture
def incidents():
    return load_incidents(io.StringIO(INCIDENTS_CSV))


@pytest.fixture
def linear_yearly_counts():
    years = np.arange(1991, 2021)
    return pd.DataFrame({'year': years, 'count': 100 + 50 * (years - 1991)})


def make_random_incidents(seed, n_rows=500):
    """Synthetic incidents with missing and malformed values sprinkled in"""
    rng = np.random.default_rng(seed)
    dates = pd.Series(pd.to_datetime('1995-01-01') + pd.to_timedelta(rng.integers(0, 365 * 10, n_rows), unit='D'))
    dates = dates.dt.strftime('%Y-%m-%d').astype('string')
    dates[rng.random(n_rows) < 0.05] = pd.NA
    dates[rng.random(n_rows) < 0.03] = 'unknown'

    biases = pd.Series(rng.choice(['Anti-Black or African American', 'Anti-Jewish', 'Anti-White',
                                   'Anti-Gay (Male)', 'Anti-Asian'], n_rows), dtype='string')
    biases[rng.random(n_rows) < 0.1] = pd.NA

    locations = pd.Series(rng.choice(['Residence/Home', 'Highway/Road/Alley/Street/Sidewalk',
                                      'School/College', 'Parking/Drop Lot/Garage'], n_rows), dtype='string')
    locations[rng.random(n_rows) < 0.1] = pd.NA

    return pd.DataFrame({'incident_date': dates, 'bias_desc': biases, 'location_name': locations})


@pytest.fixture
def random_incidents():
    return make_random_incidents
