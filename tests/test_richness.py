"""
Unit tests for traptidy.richness module
"""

import pytest
import pandas as pd
import numpy as np

from traptidy.richness import (
    to_presence_absence,
    species_richness,
    richness_per_sample,
    summarize_richness,
    build_community_matrix,
)


@pytest.fixture
def tidy():
    """Tidy observations for three samples in two habitats."""
    return pd.DataFrame({
        'Species': [
            'Bombus terrestris', 'Episyrphus balteatus', 'Bombus terrestris',
            'Bombus terrestris', 'Episyrphus balteatus', 'Musca domestica',
            'Bombus terrestris',
        ],
        'lysate_ID': ['P1', 'P1', 'P1', 'P2', 'P2', 'P2', 'P3'],
        'reads': [25, 300, 40, 130, 21, 55, 90],
        'trap_ID': ['T1', 'T1', 'T1', 'T1', 'T1', 'T1', 'T2'],
        'habitat': ['Wetland'] * 6 + ['Cropland'],
        'week': pd.array([24, 24, 24, 26, 26, 26, 28], dtype='Int64'),
        'month': pd.array([6, 6, 6, 6, 6, 6, 7], dtype='Int64'),
    })


class TestPresenceAbsence:

    def test_binary(self):
        df = pd.DataFrame({'reads': [0, 25, np.nan]})
        assert to_presence_absence(df)['presence'].tolist() == [0, 1, 0]

    def test_input_not_modified(self):
        df = pd.DataFrame({'reads': [25]})
        to_presence_absence(df)
        assert 'presence' not in df.columns


class TestSpeciesRichness:

    def test_duplicate_species_counted_once(self, tidy):
        out = species_richness(tidy, 'lysate_ID')
        assert dict(zip(out['lysate_ID'], out['richness'])) == {'P1': 2, 'P2': 3, 'P3': 1}

    def test_multiple_group_columns(self, tidy):
        out = species_richness(tidy, ['trap_ID', 'habitat'])
        result = {(t, h): r for t, h, r in zip(out['trap_ID'], out['habitat'], out['richness'])}
        assert result == {('T1', 'Wetland'): 3, ('T2', 'Cropland'): 1}

    def test_zero_reads_not_present(self):
        df = pd.DataFrame({'Species': ['a', 'b'], 'lysate_ID': ['P1', 'P1'], 'reads': [0, 30]})
        out = species_richness(df, 'lysate_ID')
        assert out['richness'].tolist() == [1]


class TestRichnessPerSample:

    def test_per_sample(self, tidy):
        out = richness_per_sample(tidy).set_index('lysate_ID')

        assert out.loc['P1', 'richness'] == 2
        assert out.loc['P1', 'total_reads'] == 365
        assert out.loc['P3', 'habitat'] == 'Cropland'
        assert out.loc['P2', 'week'] == 26

    def test_one_row_per_sample(self, tidy):
        out = richness_per_sample(tidy)
        assert len(out) == 3
        assert out['lysate_ID'].is_unique

    def test_keep_columns(self, tidy):
        out = richness_per_sample(tidy, keep_columns=['habitat'])
        assert list(out.columns) == ['lysate_ID', 'richness', 'total_reads', 'habitat']


class TestSummarizeRichness:

    def test_by_habitat(self, tidy):
        per_sample = richness_per_sample(tidy)
        summary = summarize_richness(per_sample, by='habitat').set_index('habitat')

        assert summary.loc['Wetland', 'n_samples'] == 2
        assert summary.loc['Wetland', 'mean_richness'] == 2.5
        assert summary.loc['Wetland', 'min_richness'] == 2
        assert summary.loc['Wetland', 'max_richness'] == 3
        assert summary.loc['Cropland', 'n_samples'] == 1

    def test_missing_group_dropped(self, tidy):
        per_sample = richness_per_sample(tidy)
        per_sample.loc[per_sample['lysate_ID'] == 'P3', 'habitat'] = None
        summary = summarize_richness(per_sample, by='habitat')
        assert summary['habitat'].tolist() == ['Wetland']

    def test_multiple_keys(self, tidy):
        per_sample = richness_per_sample(tidy)
        summary = summarize_richness(per_sample, by=['habitat', 'month'])
        assert len(summary) == 2
        assert list(summary.columns[:2]) == ['habitat', 'month']


class TestCommunityMatrix:

    def test_presence_matrix(self, tidy):
        matrix = build_community_matrix(tidy)

        assert matrix.shape == (3, 3)
        assert list(matrix.index) == ['P1', 'P2', 'P3']
        assert list(matrix.columns) == ['Bombus terrestris', 'Episyrphus balteatus', 'Musca domestica']
        assert matrix.loc['P1'].tolist() == [1, 1, 0]
        assert set(np.unique(matrix.values)) <= {0, 1}

    def test_read_matrix(self, tidy):
        matrix = build_community_matrix(tidy, presence=False)
        assert matrix.loc['P1', 'Bombus terrestris'] == 65
        assert matrix.loc['P3', 'Musca domestica'] == 0

    def test_pooled_by_trap(self, tidy):
        matrix = build_community_matrix(tidy, sample_column='trap_ID')
        assert list(matrix.index) == ['T1', 'T2']
        assert matrix.loc['T1'].sum() == 3
