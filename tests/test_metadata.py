"""
Unit tests for traptidy.metadata module

Tests cover:
1. Abundance table parsing and column validation
2. Sample metadata parsing (separators, decimals, duplicates)
3. Habitat label normalization
4. ISO week / month derivation
"""

import pytest
import pandas as pd

from traptidy.config import HabitatConfig, DEFAULT_HABITAT_RELABEL
from traptidy.metadata import (
    parse_abundance_table,
    parse_sample_metadata,
    validate_required_columns,
    get_sample_columns,
    normalize_habitat_labels,
    add_collection_period,
    normalize_sample_metadata,
)


# ============================================================================
# Test Abundance Table Parsing
# ============================================================================

class TestAbundanceTableParsing:
    """Tests for species-abundance table parsing."""

    def test_parse_valid_table(self, abundance_file):
        df = parse_abundance_table(abundance_file)

        assert isinstance(df, pd.DataFrame)
        assert len(df) == 7
        assert 'Species' in df.columns
        assert 'FL01_P1_T1' in df.columns
        assert df.loc[0, 'FL01_P1_T1'] == 25

    def test_missing_species_is_nan(self, abundance_file):
        df = parse_abundance_table(abundance_file)
        assert df['Species'].isna().sum() == 1

    def test_parse_nonexistent_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            parse_abundance_table(tmp_path / "nonexistent.tsv")

    def test_missing_required_columns(self, tmp_path):
        path = tmp_path / "bad.tsv"
        path.write_text("Phylum\tSpecies\tFL01_A\nArthropoda\tBombus terrestris\t30\n")

        with pytest.raises(ValueError, match="missing required columns"):
            parse_abundance_table(path)

    def test_custom_required_columns(self, tmp_path):
        path = tmp_path / "small.tsv"
        path.write_text("Phylum\tSpecies\tFL01_A\nArthropoda\tBombus terrestris\t30\n")

        df = parse_abundance_table(path, required_columns=['Phylum', 'Species'])
        assert list(df.columns) == ['Phylum', 'Species', 'FL01_A']

    def test_species_whitespace_stripped(self, tmp_path):
        path = tmp_path / "padded.tsv"
        path.write_text(
            "Phylum\tSpecies\tFL01_A\n"
            "Arthropoda\tGryllus bimaculatus \t30\n"
            "Arthropoda\t  Bombus terrestris\t40\n"
            "Arthropoda\t   \t50\n"
        )

        df = parse_abundance_table(path, required_columns=['Phylum', 'Species'])
        assert df['Species'].tolist()[:2] == ['Gryllus bimaculatus', 'Bombus terrestris']
        assert pd.isna(df.loc[2, 'Species'])

    def test_header_only_table_is_empty(self, tmp_path):
        path = tmp_path / "empty.tsv"
        path.write_text("Kingdom\tPhylum\tClass\tOrder\tFamily\tGenus\tSpecies\tBOLD_bin\n")

        with pytest.raises(pd.errors.EmptyDataError):
            parse_abundance_table(path)

    def test_get_sample_columns(self, abundance_file):
        df = parse_abundance_table(abundance_file)
        assert get_sample_columns(df) == [
            'FL01_P1_T1', 'FL01_P2_T1', 'FL02_P1_T2', 'FL02_NegControl1'
        ]


class TestColumnValidation:
    """Tests for column validation."""

    def test_validate_required_columns_present(self, sample_metadata):
        assert validate_required_columns(sample_metadata, ['lysate_ID', 'habitat']) is True

    def test_validate_required_columns_missing(self, sample_metadata):
        with pytest.raises(ValueError, match="missing required columns"):
            validate_required_columns(sample_metadata, ['lysate_ID', 'missing_col'])


# ============================================================================
# Test Sample Metadata Parsing
# ============================================================================

class TestSampleMetadataParsing:
    """Tests for sample metadata parsing."""

    def test_parse_semicolon_separated(self, metadata_file):
        df = parse_sample_metadata(metadata_file)

        assert len(df) == 3
        assert df['lysate_ID'].tolist() == ['P1_T1', 'P2_T1', 'P1_T2']
        assert df['trap_lat'].tolist() == [55.70, 55.70, 56.10]
        assert pd.api.types.is_numeric_dtype(df['biomass_grams'])

    def test_habitat_not_normalized_on_parse(self, metadata_file):
        df = parse_sample_metadata(metadata_file)
        assert df.loc[0, 'habitat'] == 'wind_farm?'

    def test_parse_nonexistent_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            parse_sample_metadata(tmp_path / "missing.csv")

    def test_missing_required_columns(self, tmp_path):
        path = tmp_path / "meta.csv"
        path.write_text("lysate_ID;habitat\nP1;Forest\n")

        with pytest.raises(ValueError, match="missing required columns"):
            parse_sample_metadata(path)

    def test_decimal_comma(self, tmp_path):
        path = tmp_path / "meta.csv"
        path.write_text(
            "trap_ID;sample_ID;habitat;lysate_ID;biomass_grams;trap_lat;trap_long;collecting_date\n"
            "T1;S1;Forest;P1;1,5;55,7;13,2;2022-06-15\n"
        )

        df = parse_sample_metadata(path, decimal=',')
        assert df.loc[0, 'biomass_grams'] == 1.5
        assert df.loc[0, 'trap_lat'] == 55.7

    def test_whitespace_cleanup(self, tmp_path):
        path = tmp_path / "meta.csv"
        path.write_text(
            "trap_ID;sample_ID;habitat;lysate_ID;biomass_grams;trap_lat;trap_long;collecting_date\n"
            "T1 ; S1 ;  Forest ;  P1  ;1.5;55.7;13.2;2022-06-15\n"
        )

        df = parse_sample_metadata(path)
        assert df.loc[0, 'lysate_ID'] == 'P1'
        assert df.loc[0, 'habitat'] == 'Forest'

    def test_duplicate_lysates_keep_first(self, tmp_path):
        path = tmp_path / "meta.csv"
        path.write_text(
            "trap_ID;sample_ID;habitat;lysate_ID;biomass_grams;trap_lat;trap_long;collecting_date\n"
            "T1;S1;Forest;P1;1.5;55.7;13.2;2022-06-15\n"
            "T2;S2;Wetland;P1;2.5;56.0;13.0;2022-06-22\n"
        )

        df = parse_sample_metadata(path)
        assert len(df) == 1
        assert df.loc[0, 'trap_ID'] == 'T1'

    def test_rows_without_lysate_dropped(self, tmp_path):
        path = tmp_path / "meta.csv"
        path.write_text(
            "trap_ID;sample_ID;habitat;lysate_ID;biomass_grams;trap_lat;trap_long;collecting_date\n"
            "T1;S1;Forest;;1.5;55.7;13.2;2022-06-15\n"
            "T2;S2;Wetland;P2;2.5;56.0;13.0;2022-06-22\n"
        )

        df = parse_sample_metadata(path)
        assert df['lysate_ID'].tolist() == ['P2']

    def test_invalid_coordinates_become_missing(self, tmp_path):
        path = tmp_path / "meta.csv"
        path.write_text(
            "trap_ID;sample_ID;habitat;lysate_ID;biomass_grams;trap_lat;trap_long;collecting_date\n"
            "T1;S1;Forest;P1;n/a;unknown;13.2;2022-06-15\n"
        )

        df = parse_sample_metadata(path)
        assert pd.isna(df.loc[0, 'trap_lat'])
        assert pd.isna(df.loc[0, 'biomass_grams'])


# ============================================================================
# Test Habitat Normalization
# ============================================================================

class TestHabitatNormalization:
    """Tests for habitat label clean-up."""

    def test_wind_farm_with_marker(self):
        result = normalize_habitat_labels(pd.Series(["wind_farm?"]), DEFAULT_HABITAT_RELABEL)
        assert result.tolist() == ["Wetland"]

    def test_relabel_table(self):
        raw = pd.Series(["Cropland/Grassland", "Urban/Cropland", "Forest/Grassland", "wind_farm"])
        result = normalize_habitat_labels(raw, DEFAULT_HABITAT_RELABEL)
        assert result.tolist() == ["Grassland", "Cropland", "Grassland", "Wetland"]

    def test_unknown_labels_pass_through(self):
        raw = pd.Series(["Forest", "Urban?", "Heathland"])
        result = normalize_habitat_labels(raw, DEFAULT_HABITAT_RELABEL)
        assert result.tolist() == ["Forest", "Urban", "Heathland"]

    def test_only_trailing_marker_removed(self):
        result = normalize_habitat_labels(pd.Series(["Forest?edge?"]), {})
        assert result.tolist() == ["Forest?edge"]

    def test_missing_habitat_stays_missing(self):
        result = normalize_habitat_labels(pd.Series(["Forest", None]), DEFAULT_HABITAT_RELABEL)
        assert result.iloc[0] == "Forest"
        assert pd.isna(result.iloc[1])

    def test_no_suffix_stripping(self):
        result = normalize_habitat_labels(
            pd.Series(["wind_farm?"]), DEFAULT_HABITAT_RELABEL, strip_suffix=""
        )
        assert result.tolist() == ["wind_farm?"]


# ============================================================================
# Test Collection Period
# ============================================================================

class TestCollectionPeriod:
    """Tests for ISO week and month derivation."""

    def test_week_and_month(self):
        df = pd.DataFrame({'collecting_date': ['2022-06-15', '2022-01-01', '2022-12-31']})
        out = add_collection_period(df)

        assert out['week'].tolist() == [24, 52, 52]
        assert out['month'].tolist() == [6, 1, 12]

    def test_nullable_integer_dtype(self):
        df = pd.DataFrame({'collecting_date': ['2022-06-15']})
        out = add_collection_period(df)
        assert str(out['week'].dtype) == 'Int64'
        assert str(out['month'].dtype) == 'Int64'

    def test_unparseable_date_gives_missing(self):
        df = pd.DataFrame({'collecting_date': ['2022-06-15', 'not a date', None]})
        out = add_collection_period(df)

        assert out.loc[0, 'week'] == 24
        assert pd.isna(out.loc[1, 'week'])
        assert pd.isna(out.loc[1, 'month'])
        assert pd.isna(out.loc[2, 'week'])

    def test_explicit_date_format(self):
        df = pd.DataFrame({'collecting_date': ['15.06.2022']})
        out = add_collection_period(df, date_format='%d.%m.%Y')
        assert out.loc[0, 'month'] == 6

    def test_input_not_modified(self):
        df = pd.DataFrame({'collecting_date': ['2022-06-15']})
        add_collection_period(df)
        assert 'week' not in df.columns


class TestNormalizeSampleMetadata:
    """Tests for the combined metadata normalization."""

    def test_normalize(self, sample_metadata):
        out = normalize_sample_metadata(sample_metadata)

        assert out['habitat'].tolist() == ['Wetland', 'Wetland', 'Cropland']
        assert out['week'].tolist() == [24, 26, 28]
        assert out['month'].tolist() == [6, 6, 7]
        assert len(out) == len(sample_metadata)

    def test_custom_relabel(self, sample_metadata):
        cfg = HabitatConfig(relabel={'wind_farm': 'Wind farm'})
        out = normalize_sample_metadata(sample_metadata, cfg)
        assert out['habitat'].tolist() == ['Wind farm', 'Wind farm', 'Urban/Cropland']
