"""Pytest configuration to make the local packages importable without installation."""
import sys
from pathlib import Path

import pytest

# Ensure repository root is on sys.path for module resolution
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.data import parse_dataset


SAMPLE_CSV = (
    "OM,PS,DESCRIÇÃO,STATUS,DATA ENTRADA,SAÍDA OFICINA,OFICINA,VALOR ORÇAMENTO,VALOR MATERIAL,"
    "VALOR SERV TERC,TX OMPS,HH,TIPO SERVIÇO,ADITAMENTO,MÊS ENTRADA,TEMPO ENVIO (DIAS),TEMPO AGU IND REC (MESES)\r\n"
    'NAvPaFlu,1,"Reparo de bomba, eixo e selo",orçar,15/03/2024,,MECÂNICA,"1.234,56","200,00",,"5,5","12,5",Orgânico,,março,3,0\r\n'
    "NAvPaFlu,2,Troca de cabo,CONCLUÍDO,02/01/2024,10/01/2024,ELÉTRICA,\"500,00\",,,,8,Terceirizado,Aditivo 1,,5,1\n"
    "\n"
    "CFlMT,1,Pintura,CANCELADO,31/04/2024,,CARPINTARIA,abc,,,,,,,,x,2\n"
    "CFlMT,0,Linha inválida,EXECUTANDO,01/02/2024,,MECÂNICA,\"10,00\",,,,,,,,,\n"
    ",3,,,,,,,,,,,,,,,\n"
)


@pytest.fixture
def sample_csv() -> str:
    """Sheet export with quoted fields, blanks, a bad date and a row without PS."""

    return SAMPLE_CSV


@pytest.fixture
def records(sample_csv: str):
    return parse_dataset(sample_csv)
