import os
import sys
import matplotlib.pyplot as plt
import numpy as np

from hate_crime_analysis import (
    DATA_FILE,
    OUTPUT_DIR,
    DataUnavailable,
    analyze_incidents,
    is_unavailable,
    load_incidents,
)

REPORT_FILE = 'analysis_results.txt'


def _finish_plot(filename, output_dir, show):
    path = os.path.join(output_dir, filename)
    plt.tight_layout()
    plt.savefig(path, dpi=300, bbox_inches='tight')
    if show:
        plt.show()
    plt.close()
    return path


def plot_incidents_by_year(yearly_counts, trend=None, output_dir=OUTPUT_DIR, show=False):
    """Bar chart of incidents per year with the fitted linear trend"""
    plt.figure(figsize=(10, 6))
    plt.bar(yearly_counts['year'], yearly_counts['count'], color='skyblue')

    if trend is not None and not is_unavailable(trend):
        offsets = yearly_counts['year'] - trend['base_year']
        fitted = trend['intercept'] + trend['slope'] * offsets
        plt.plot(yearly_counts['year'], fitted, 'r--', alpha=0.8, linewidth=2,
                 label=f"Trend: {trend['slope']:+.1f} incidents/year (R² = {trend['r_squared']:.2f})")
        plt.legend(loc='upper left')

    plt.title('Hate Crime Incidents by Year')
    plt.xlabel('Year')
    plt.ylabel('Incidents')
    plt.xticks(rotation=45)
    return _finish_plot('bar_incidents_by_year.png', output_dir, show)


def plot_top_categories(frequencies, title, filename, output_dir=OUTPUT_DIR, show=False):
    """Horizontal bar chart of a ranked category frequency table, highest on top"""
    plt.figure(figsize=(10, 6))
    ranked = frequencies.iloc[::-1]
    plt.barh(ranked['category'], ranked['count'], color='salmon')
    plt.title(title)
    plt.xlabel('Incidents')
    return _finish_plot(filename, output_dir, show)


def plot_category_shares(shares, output_dir=OUTPUT_DIR, show=False):
    """Stacked area chart of each category's share of its year's incidents"""
    yearly_shares = shares.pivot(index='year', columns='category', values='share').fillna(0)

    # Create a mapping for long labels to shorter ones
    label_mapping = {
        'Anti-Lesbian, Gay, Bisexual, or Transgender (Mixed Group)': 'Anti-LGBT (Mixed)',
        'Anti-Eastern Orthodox (Russian, Greek, Other)': 'Anti-Eastern Orthodox',
        'Anti-Native Hawaiian or Other Pacific Islander': 'Anti-Pacific Islander',
        'Anti-American Indian or Alaska Native': 'Anti-Native American'
    }
    yearly_shares.columns = [label_mapping.get(col, col) for col in yearly_shares.columns]

    fig, ax = plt.subplots(figsize=(16, 8))
    yearly_shares.plot(kind='area', ax=ax, alpha=0.7,
                       color=[tuple(c) for c in plt.cm.Set3(np.linspace(0, 1, len(yearly_shares.columns)))])
    ax.set_title('Share of Incidents by Category per Year', fontsize=13, fontweight='bold', pad=20)
    ax.set_xlabel('Year', fontsize=11)
    ax.set_ylabel('Share of Incidents', fontsize=11)
    ax.grid(True, alpha=0.3)
    ax.legend(bbox_to_anchor=(1.05, 1), loc='upper left', fontsize=7)
    return _finish_plot('area_category_shares.png', output_dir, show)


def plot_trend_timeline(rolling, output_dir=OUTPUT_DIR, show=False):
    """Annual counts with moving average and volatility band"""
    fig, ax = plt.subplots(figsize=(20, 8))

    ax.plot(rolling['year'], rolling['count'], 'o-', alpha=0.6, label='Annual Totals', color='gray')
    ax.plot(rolling['year'], rolling['moving_average'], linewidth=3, label='Moving Average', color='darkblue')
    ax.fill_between(rolling['year'],
                    rolling['moving_average'] - rolling['volatility'],
                    rolling['moving_average'] + rolling['volatility'],
                    alpha=0.2, label='Volatility Band', color='blue')

    ax.set_title('Trend Analysis: Moving Average and Volatility', fontsize=14, fontweight='bold')
    ax.set_xlabel('Year', fontsize=12)
    ax.set_ylabel('Incidents', fontsize=12)
    ax.legend()
    ax.grid(True, alpha=0.3)
    return _finish_plot('hate_crime_trend_timeline.png', output_dir, show)


def plot_results(results, output_dir=OUTPUT_DIR, show=False):
    """Saves every chart whose analysis is available, returns the saved paths"""
    paths = []
    yearly_counts = results['yearly']['yearly_counts']
    if yearly_counts.empty:
        print("Skipping incidents by year chart: no dated incidents")
    else:
        paths.append(plot_incidents_by_year(yearly_counts, results['trend'], output_dir, show))

    charts = [
        ('top_bias', lambda r: plot_top_categories(
            r, 'Top Hate Crime Incidents by Bias Description', 'barh_incidents_by_bias.png', output_dir, show)),
        ('top_location', lambda r: plot_top_categories(
            r, 'Top Hate Crime Incidents by Location', 'barh_incidents_by_location.png', output_dir, show)),
        ('shares', lambda r: plot_category_shares(r['shares'], output_dir, show)),
        ('rolling', lambda r: plot_trend_timeline(r, output_dir, show)),
    ]
    for key, plot in charts:
        if is_unavailable(results[key]):
            print(f"Skipping {key} chart: {results[key]['reason']}")
            continue
        paths.append(plot(results[key]))
    return paths


def _write_unavailable(f, result):
    f.write(f"Unavailable: {result['reason']}\n\n")


def _write_frequencies(f, frequencies, missing):
    if is_unavailable(frequencies):
        _write_unavailable(f, frequencies)
        return
    for rank, category, count in zip(frequencies['rank'], frequencies['category'], frequencies['count']):
        f.write(f"{rank:>3}. {category}: {count:,}\n")
    f.write(f"\nMissing values excluded from ranking: {missing['missing']:,} of {missing['total']:,}\n\n")


def export_analysis_results(results, filename=OUTPUT_DIR + REPORT_FILE):
    """
    Exports all analysis results to a text file with explanations
    """
    yearly = results['yearly']
    with open(filename, 'w', encoding='utf-8') as f:
        f.write("="*80 + "\n")
        f.write("EXPLORATORY ANALYSIS OF REPORTED HATE CRIME INCIDENTS\n")
        f.write("="*80 + "\n\n")

        f.write("OVERVIEW:\n")
        f.write(f"Incidents in dataset: {yearly['total_rows']:,}\n")
        f.write(f"Excluded for missing incident_date: {yearly['missing_dates']:,}\n")
        f.write(f"Excluded for unparseable incident_date: {yearly['unparseable_dates']:,}\n\n")

        f.write("1. INCIDENTS BY YEAR\n")
        f.write("-" * 50 + "\n")
        for year, count in zip(yearly['yearly_counts']['year'], yearly['yearly_counts']['count']):
            f.write(f"{year}: {count:,}\n")
        f.write("\n")

        summary = results['summary']
        f.write("2. DESCRIPTIVE STATISTICS OF YEARLY COUNTS\n")
        f.write("-" * 50 + "\n")
        if is_unavailable(summary):
            _write_unavailable(f, summary)
        else:
            f.write(f"Years: {summary['n_years']}\n")
            f.write(f"Mean: {summary['mean']:.1f}\n")
            f.write(f"Median: {summary['median']:.1f}\n")
            f.write(f"Interquartile range: {summary['interquartile_range']:.1f} "
                    f"(Q1 = {summary['q1']:.1f}, Q3 = {summary['q3']:.1f})\n")
            f.write(f"Standard deviation (sample): {summary['standard_deviation']:.1f}\n\n")

        trend = results['trend']
        f.write("3. LINEAR TREND OF YEARLY COUNTS\n")
        f.write("-" * 50 + "\n")
        f.write("Purpose: Tests whether yearly incident counts change linearly over time\n")
        f.write("Null Hypothesis: The slope of counts against year is zero\n\n")
        if is_unavailable(trend):
            _write_unavailable(f, trend)
        else:
            f.write(f"Slope: {trend['slope']:.2f} incidents per year (std err {trend['std_err']:.2f})\n")
            f.write(f"Intercept (fitted count in {trend['base_year']}): {trend['intercept']:.1f}\n")
            f.write(f"p-value: {trend['p_value']:.2e}\n")
            f.write(f"R²: {trend['r_squared']:.4f}\n")
            f.write(f"Years fitted: {trend['n_years']}\n\n")
            if trend['p_value'] < 0.05:
                direction = 'increasing' if trend['slope'] > 0 else 'decreasing'
                f.write(f"✓ SIGNIFICANT: Yearly counts show a {direction} linear trend (p < 0.05)\n")
            else:
                f.write("✗ NOT SIGNIFICANT: No linear trend detected (p ≥ 0.05)\n")
            f.write("\nLimitation: the p-value assumes independent yearly residuals. Counts in adjacent\n")
            f.write("years are likely serially correlated, which inflates apparent significance.\n\n")

        terms = results['terms']
        f.write("4. INCIDENTS BY PRESIDENTIAL TERM\n")
        f.write("-" * 50 + "\n")
        if is_unavailable(terms):
            _write_unavailable(f, terms)
        else:
            for _, term in terms.iterrows():
                f.write(f"{term['president']} ({term['party']}, {term['first_year']}-{term['last_year']}): "
                        f"{term['count']:,} total, {term['mean_per_year']:.1f} per year\n")
            f.write("\n")

        f.write("5. TOP BIAS MOTIVATIONS\n")
        f.write("-" * 50 + "\n")
        f.write("Incidents listing several biases are counted once per bias.\n\n")
        _write_frequencies(f, results['top_bias'], results['bias_missing'])

        f.write("6. TOP LOCATIONS\n")
        f.write("-" * 50 + "\n")
        _write_frequencies(f, results['top_location'], results['location_missing'])

        shares = results['shares']
        f.write(f"7. YEARLY SHARE BY {results['share_field'].upper()}\n")
        f.write("-" * 50 + "\n")
        f.write(f"Share = incidents in category / incidents that year with a non-null {results['share_field']}.\n")
        f.write("Incidents missing the field are left out of the denominator, so shares describe\n")
        f.write("the incidents where the field was reported.\n\n")
        if is_unavailable(shares):
            _write_unavailable(f, shares)
        else:
            f.write(f"Excluded without a valid incident_date: {shares['excluded_dates']:,}\n")
            f.write(f"Excluded for missing {results['share_field']}: {shares['excluded_missing_field']:,}\n\n")
            for year, year_shares in shares['shares'].groupby('year'):
                leader = year_shares.sort_values('share', ascending=False, kind='stable').iloc[0]
                f.write(f"{year}: {len(year_shares)} categories, largest {leader['category']} "
                        f"({leader['share']*100:.1f}%)\n")
            f.write("\n")

    return filename


def main(data_file=DATA_FILE, output_dir=OUTPUT_DIR, show=False):
    os.makedirs(output_dir, exist_ok=True)

    print("\n" + "="*80)
    print("STARTING HATE CRIME EXPLORATORY ANALYSIS")
    print("="*80)
    try:
        df = load_incidents(data_file)
    except DataUnavailable as e:
        print(f"Error loading incident data: {e}")
        return 1

    results = analyze_incidents(df)
    paths = plot_results(results, output_dir, show)
    report = export_analysis_results(results, os.path.join(output_dir, REPORT_FILE))

    print("Analysis completed successfully!")
    print(f"Charts saved: {len(paths)}")
    print(f"Results exported to: {report}")

    summary = results['summary']
    if not is_unavailable(summary):
        print(f"Mean incidents per year: {summary['mean']:.1f} (SD {summary['standard_deviation']:.1f})")
    trend = results['trend']
    if not is_unavailable(trend):
        print(f"Trend: {trend['slope']:+.1f} incidents/year (p = {trend['p_value']:.2e})")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1] if len(sys.argv) > 1 else DATA_FILE))
