import logging

import pytest

from bankrecon.documents import PageContent
from bankrecon.models import TextItem

BDK_TEXT = """BANQUE DE DAKAR - BDK
BANK POSITION AS AT 20/06/2025
OPENING BALANCE 19/06/2025 15 450 000
ADD : DEPOSIT NOT YET CLEARED
DATE N° TYPE CLIENT REF AMOUNT
18/06/2025 0001 REGLEMENT FACTURE C001 FAC-118 750 000
19/06/2025 0002 REGUL IMPAYE C002 500 000
TOTAL DEPOSIT NOT YET CLEARED 1 250 000
LESS : CHECK NOT YET CLEARED
17/06/2025 4512 SENELEC 300 000
18/06/2025 4513 TOTAL SENEGAL 450 000
TOTAL CHECK NOT YET CLEARED 750 000
CLOSING BALANCE as per Book : C=(A-B) 15 950 000
BANK FACILITY
DECOUVERT 50 000 000 20 000 000 30 000 000
IMPAYES
20/06/2025 15/06/2025 IMPAYE C003 EFFET RETOURNE 2 000 000
"""

ATB_TEXT = """ATB - ARAB TUNISIAN BANK
SITUATION AU 20/06/2025
SOLDE OUVERTURE 10 000 000
DEPOTS NON CREDITES
19/06/2025 20/06/2025 VERSEMENT V-001 C001 500 000
CHEQUES EMIS NON DEBITES
18/06/2025 7788 FOURNISSEUR ABC 200 000
SOLDE CLOTURE COMPTABLE : 10 300 000
FACILITES BANCAIRES
ESCOMPTE 20 000 000 5 000 000 15 000 000
IMPAYES NON REGULARISES
15/06/2025 18/06/2025 C003 EFFET IMPAYE 1 500 000
"""

BICIS_TEXT = """BICIS
POSITION AU 20/06/2025
SOLDE INITIAL 5 000 000
DEPOTS EN ATTENTE
19/06/2025 R-100 C010 REMISE CHEQUE 400 000
SOLDE FINAL COMPTABLE : 5 400 000
INCIDENTS DE PAIEMENT
12/06/2025 C011 CHEQUE SANS PROVISION 250 000
"""

ORA_TEXT = """ORABANK
REPORT DATE: 20/06/2025
BALANCE OPENING 8 000 000
DEPOSITS NOT CLEARED
19/06/2025 20/06/2025 C020 REF-9 TRANSFER 600 000
BALANCE CLOSING BOOK : 8 600 000
UNPAID ITEMS
20/06/2025 16/06/2025 UNPAID C021 DRAFT RETURNED 700 000
"""

SGBS_TEXT = """SOCIETE GENERALE SGBS
DATE POSITION : 20/06/2025
SOLDE OUVERTURE 3 000 000
DEPOTS NON CREDITES
19/06/2025 5501 VERSEMENT ESPECES 900 000
SOLDE FERMETURE LIVRE : 3 900 000
IMPAYES NON REGULARISES
14/06/2025 C030 EFFET RETOURNE 350 000
"""

BIS_TEXT = """BANQUE ISLAMIQUE BIS
POSITION AS AT 20/06/2025
OPENING BALANCE 4 000 000
DEPOSITS NOT CLEARED
19/06/2025 C040 MUR-77 MURABAHA REPAYMENT 1 000 000
CLOSING BALANCE BOOK : 5 000 000
DEFAULTED ITEMS
20/06/2025 10/06/2025 DEFAULT C041 INSTALMENT MISSED 450 000
"""


def words(y, *placed):
    """TextItems for one visual line from (x, text) pairs."""
    return [TextItem(text=text, x=float(x), y=float(y), font_size=9.0) for x, text in placed]


@pytest.fixture
def bdk_text():
    return BDK_TEXT


@pytest.fixture
def atb_text():
    return ATB_TEXT


@pytest.fixture
def bank_texts():
    return {
        "BDK": BDK_TEXT,
        "ATB": ATB_TEXT,
        "BICIS": BICIS_TEXT,
        "ORA": ORA_TEXT,
        "SGBS": SGBS_TEXT,
        "BIS": BIS_TEXT,
    }


@pytest.fixture
def bdk_page():
    """One BDK page laid out on the 850-unit reference width."""
    items = []
    items += words(10, (70, "BANK"), (150, "POSITION"), (270, "AS"), (300, "AT"), (420, "20/06/2025"))
    items += words(30, (70, "OPENING"), (150, "BALANCE"), (680, "15"), (710, "450"), (740, "000"))
    items += words(50, (70, "ADD"), (150, ":"), (200, "DEPOSIT"), (260, "NOT"), (300, "YET"), (340, "CLEARED"))
    items += words(70, (70, "18/06/2025"), (150, "0001"), (270, "REGLEMENT"), (300, "FACTURE"),
                   (520, "C001"), (620, "FAC-118"), (720, "750"), (745, "000"))
    items += words(110, (70, "LESS"), (150, ":"), (200, "CHECK"), (260, "NOT"), (300, "YET"), (340, "CLEARED"))
    items += words(130, (70, "17/06/2025"), (150, "4512"), (420, "SENELEC"), (720, "300"), (745, "000"))
    items += words(150, (70, "CLOSING"), (150, "BALANCE"), (200, "as"), (230, "per"), (260, "Book"),
                   (290, ":"), (680, "15"), (710, "900"), (740, "000"))
    return PageContent(page_number=1, page_width=850.0, page_height=1100.0, items=items)


@pytest.fixture(autouse=True)
def restore_root_logging():
    """Drop handlers a test installed on the root logger."""
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers[:]:
        if handler not in before:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
