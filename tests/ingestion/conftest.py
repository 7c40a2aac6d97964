"""Statement fixtures shared by the ingestion tests."""

import pytest

SGML_STATEMENT = """OFXHEADER:100
DATA:OFXSGML
VERSION:102
CHARSET:1252

<OFX>
<BANKMSGSRSV1>
<STMTTRNRS>
<STMTRS>
<CURDEF>BRL
<BANKACCTFROM>
<BANKID>0341
<ACCTID>12345-6
<ACCTTYPE>CHECKING
</BANKACCTFROM>
<BANKTRANLIST>
<DTSTART>20250301
<DTEND>20250331
<STMTTRN>
<TRNTYPE>CREDIT
<DTPOSTED>20250310120000[-3:BRT]
<TRNAMT>1.000,00
<FITID>TX001
<MEMO>PIX RECEBIDO ACME LTDA
</STMTTRN>
<STMTTRN>
<TRNTYPE>DEBIT
<DTPOSTED>20250311
<TRNAMT>250.00
<FITID>TX002
<MEMO>TARIFA PACOTE
</STMTTRN>
<STMTTRN>
<TRNTYPE>OTHER
<DTPOSTED>20250231
<TRNAMT>300,00
<MEMO>Depósito em dinheiro
</STMTTRN>
</BANKTRANLIST>
</STMTRS>
</STMTTRNRS>
</BANKMSGSRSV1>
</OFX>
"""

XML_CARD_STATEMENT = """<?xml version="1.0" encoding="UTF-8"?>
<?OFX OFXHEADER="200" VERSION="211" SECURITY="NONE"?>
<OFX>
  <CREDITCARDMSGSRSV1>
    <CCSTMTTRNRS>
      <CCSTMTRS>
        <CURDEF>BRL</CURDEF>
        <CCACCTFROM><ACCTID>4111</ACCTID></CCACCTFROM>
        <BANKTRANLIST>
          <STMTTRN>
            <TRNTYPE>DEBIT</TRNTYPE>
            <DTPOSTED>20250305</DTPOSTED>
            <TRNAMT>-89.90</TRNAMT>
            <FITID>CC1</FITID>
            <NAME>Papelaria Central</NAME>
          </STMTTRN>
          <STMTTRN>
            <TRNTYPE>CREDIT</TRNTYPE>
            <DTPOSTED>20250306</DTPOSTED>
            <TRNAMT>abc</TRNAMT>
            <FITID>CC2</FITID>
          </STMTTRN>
        </BANKTRANLIST>
      </CCSTMTRS>
    </CCSTMTTRNRS>
  </CREDITCARDMSGSRSV1>
</OFX>
"""


@pytest.fixture
def sgml_statement() -> bytes:
    return SGML_STATEMENT.encode("cp1252")


@pytest.fixture
def xml_card_statement() -> bytes:
    return XML_CARD_STATEMENT.encode("utf-8")
