"""
Shared fixtures: a small trap survey with two traps, three lysates and one
negative control.
"""

import sys
from pathlib import Path

import matplotlib
matplotlib.use("Agg")

import pandas as pd
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))


ABUNDANCE_TSV = (
    "Kingdom\tPhylum\tClass\tOrder\tFamily\tGenus\tSpecies\tBOLD_bin\t"
    "FL01_P1_T1\tFL01_P2_T1\tFL02_P1_T2\tFL02_NegControl1\n"
    "Animalia\tArthropoda\tInsecta\tHymenoptera\tApidae\tBombus\tBombus terrestris\tBOLD:AAA0001\t"
    "25\t0\t130\t40\n"
    "Animalia\tArthropoda\tInsecta\tDiptera\tSyrphidae\tEpisyrphus\tEpisyrphus balteatus\tBOLD:AAA0002\t"
    "15\t300\t21\t0\n"
    "Animalia\tArthropoda\tInsecta\tOrthoptera\tGryllidae\tGryllus\tGryllus bimaculatus\tBOLD:AAA0003\t"
    "500\t500\t500\t500\n"
    "Animalia\tArthropoda\tInsecta\tDiptera\tSciaridae\t\tunclassified Sciaridae\tBOLD:AAA0004\t"
    "90\t90\t90\t90\n"
    "Animalia\tArthropoda\tInsecta\tDiptera\tCecidomyiidae\t\tCecidomyiidae_XX\tBOLD:AAA0005\t"
    "80\t80\t80\t80\n"
    "Animalia\tMollusca\tGastropoda\tStylommatophora\tArionidae\tArion\tArion vulgaris\tBOLD:AAA0006\t"
    "70\t70\t70\t70\n"
    "Animalia\tArthropoda\tInsecta\tDiptera\t\t\t\tBOLD:AAA0007\t"
    "60\t60\t60\t60\n"
)

METADATA_CSV = (
    "trap_ID;sample_ID;habitat;lysate_ID;biomass_grams;trap_lat;trap_long;collecting_date\n"
    "T1;S1;wind_farm?;P1_T1;1.25;55.70;13.20;2022-06-15\n"
    "T1;S2;wind_farm?;P2_T1;0.80;55.70;13.20;2022-06-29\n"
    "T2;S3;Urban/Cropland;P1_T2;2.10;56.10;12.90;2022-07-13\n"
)


@pytest.fixture
def abundance_file(tmp_path):
    path = tmp_path / "survey_species_table.tsv"
    path.write_text(ABUNDANCE_TSV)
    return path


@pytest.fixture
def metadata_file(tmp_path):
    path = tmp_path / "trap_metadata.csv"
    path.write_text(METADATA_CSV)
    return path


@pytest.fixture
def sample_metadata():
    """Parsed (not yet normalized) sample metadata."""
    return pd.DataFrame({
        'trap_ID': ['T1', 'T1', 'T2'],
        'sample_ID': ['S1', 'S2', 'S3'],
        'habitat': ['wind_farm?', 'wind_farm?', 'Urban/Cropland'],
        'lysate_ID': ['P1_T1', 'P2_T1', 'P1_T2'],
        'biomass_grams': [1.25, 0.80, 2.10],
        'trap_lat': [55.70, 55.70, 56.10],
        'trap_long': [13.20, 13.20, 12.90],
        'collecting_date': ['2022-06-15', '2022-06-29', '2022-07-13'],
    })


def make_abundance(rows, samples):
    """
    Build a wide abundance table.

    rows: list of (phylum, species, [reads per sample])
    samples: sample column headers
    """
    records = []
    for i, (phylum, species, reads) in enumerate(rows):
        record = {
            'Kingdom': 'Animalia',
            'Phylum': phylum,
            'Class': 'Insecta',
            'Order': 'Diptera',
            'Family': 'Fam',
            'Genus': 'Gen',
            'Species': species,
            'BOLD_bin': f'BOLD:AAA{i:04d}',
        }
        record.update(dict(zip(samples, reads)))
        records.append(record)
    return pd.DataFrame(records)
