"""
OFX bank-statement adapter.

Parses OFX 1.x (SGML, leaf tags usually unclosed) and OFX 2.x (XML) into
normalized transactions with deterministic dedup keys.

Layout handled:
    OFX > BANKMSGSRSV1 > STMTTRNRS > STMTRS > BANKTRANLIST > STMTTRN
    OFX > CREDITCARDMSGSRSV1 > CCSTMTTRNRS > CCSTMTRS > BANKTRANLIST > STMTTRN
    Some banks drop the OFX root or the message-set wrapper; the statement
    list is also looked up under BANKMSGSRSV1.STMTTRNRS and OFX.STMTTRNRS.
    A file with no statement list parses to zero transactions.

Per transaction:
    - FITID, or ``HASH_<16 hex>`` of "date|amount|memo" when the bank omits it.
    - DTPOSTED -> calendar date from the YYYYMMDD prefix; an impossible
      date gives ``has_valid_date=False`` and ``posted_date=None``.
    - TRNAMT accepts "1234.56", "-1234.56", "1.234,56" and "1234,56".
      Unparseable amounts are counted in ``stats.errors`` and skipped.
    - Classification into credit / debit / other from the sign, the
      TRNTYPE code, then Portuguese memo keywords.  Debits are always
      returned with a negative amount, including banks that report them
      unsigned.

Failure:
    Structurally unparseable input (no tags, or a closing tag that matches
    nothing open) raises ``OFXParseError`` with the underlying message.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

from backoffice_kernel.domain.money import (
    absolute_money,
    is_negative,
    is_zero,
    normalize_separators,
    sum_money,
    to_money_string,
)
from backoffice_kernel.exceptions import OFXParseError
from backoffice_kernel.utils.hashing import synthetic_fit_id


KIND_CREDIT = "credit"
KIND_DEBIT = "debit"
KIND_OTHER = "other"

CREDIT_TYPE_CODES = frozenset({"CREDIT", "DEP", "INT", "DIV", "DIRECTDEP"})
DEBIT_TYPE_CODES = frozenset({
    "DEBIT", "PAYMENT", "CHECK", "ATM", "POS", "FEE", "SRVCHG",
    "CASH", "DIRECTDEBIT", "REPEATPMT",
})

# Accent-stripped, lowercase.  Credit phrases are checked first: they are
# the more specific ones ("pagamento recebido" is a credit).
CREDIT_KEYWORDS = (
    "recebimento", "recebido", "pix recebido", "ted recebida", "doc recebido",
    "transferencia recebida", "deposito", "estorno", "rendimento", "credito",
)
DEBIT_KEYWORDS = (
    "pagamento", "pgto", "saque", "tarifa", "pix enviado", "ted enviada",
    "doc enviado", "transferencia enviada", "compra", "debito", "boleto",
)

STATEMENT_PATHS: tuple[tuple[str, ...], ...] = (
    ("OFX", "BANKMSGSRSV1", "STMTTRNRS"),
    ("BANKMSGSRSV1", "STMTTRNRS"),
    ("OFX", "STMTTRNRS"),
    ("OFX", "CREDITCARDMSGSRSV1", "CCSTMTTRNRS"),
    ("CREDITCARDMSGSRSV1", "CCSTMTTRNRS"),
)

# Elements that never hold children; an empty one stays an empty leaf.
LEAF_TAGS = frozenset({
    "TRNTYPE", "DTPOSTED", "DTUSER", "DTAVAIL", "TRNAMT", "FITID", "MEMO", "NAME",
    "REFNUM", "CHECKNUM", "PAYEEID", "SIC", "CURDEF", "BANKID", "BRANCHID", "ACCTID",
    "ACCTTYPE", "ACCTKEY", "DTSTART", "DTEND", "BALAMT", "DTASOF", "TRNUID",
    "CODE", "SEVERITY", "DTSERVER", "LANGUAGE",
})

_TOKEN = re.compile(r"<(/?)([A-Za-z0-9_.]+)\s*>([^<]*)")
_STRIP = re.compile(r"<\?.*?\?>|<!--.*?-->", re.DOTALL)
_CHARSET = re.compile(r"CHARSET:\s*(\S+)|encoding=[\"']([^\"']+)[\"']", re.IGNORECASE)
_DATE_PREFIX = re.compile(r"^\s*(\d{4})(\d{2})(\d{2})")


@dataclass(frozen=True)
class OFXTransaction:
    fit_id: str
    fit_id_synthetic: bool
    posted_date: date | None
    has_valid_date: bool
    raw_date: str
    amount: str
    kind: str
    type_code: str
    memo: str
    name: str
    reference: str | None
    check_number: str | None

    @property
    def description(self) -> str:
        if self.memo and self.name and self.name not in self.memo:
            return f"{self.name} - {self.memo}"
        return self.memo or self.name


@dataclass(frozen=True)
class OFXAccount:
    account_id: str | None
    bank_id: str | None
    account_type: str | None
    currency: str | None


@dataclass(frozen=True)
class OFXStats:
    total: int
    credits: int
    debits: int
    others: int
    credit_total: str
    debit_total: str
    invalid_dates: int
    errors: int


@dataclass(frozen=True)
class OFXParseResult:
    transactions: tuple[OFXTransaction, ...]
    stats: OFXStats
    account: OFXAccount | None


# ---------------------------------------------------------------------------
# Decoding and tree building
# ---------------------------------------------------------------------------


def decode_ofx(data: bytes | str) -> str:
    """Decode raw bytes honouring the CHARSET / encoding header; cp1252 fallback."""
    if isinstance(data, str):
        return data
    head = data[:1024].decode("ascii", errors="ignore")
    match = _CHARSET.search(head)
    declared = (match.group(1) or match.group(2)) if match else None
    candidates = []
    if declared and declared.upper() in ("1252", "WINDOWS-1252", "CP1252"):
        candidates.append("cp1252")
    elif declared and declared.upper() not in ("NONE", "USASCII"):
        candidates.append(declared)
    candidates.extend(["utf-8", "cp1252"])
    for encoding in candidates:
        try:
            return data.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            continue
    return data.decode("cp1252", errors="replace")


def _add_child(parent: dict[str, Any], tag: str, value: Any) -> None:
    if tag not in parent:
        parent[tag] = value
    elif isinstance(parent[tag], list):
        parent[tag].append(value)
    else:
        parent[tag] = [parent[tag], value]


def build_tree(text: str) -> dict[str, Any]:
    """
    Build a nested dict from OFX markup.

    An open tag followed by text is a leaf (its optional closing tag is
    consumed); an open tag followed directly by another tag opens an
    aggregate, unless it is one of ``LEAF_TAGS``.  Repeated tags become
    lists.
    """
    body = _STRIP.sub("", text)
    root: dict[str, Any] = {}
    stack: list[tuple[str, dict[str, Any]]] = [("", root)]
    last_leaf: str | None = None
    seen_tag = False

    for match in _TOKEN.finditer(body):
        seen_tag = True
        closing, tag, content = match.group(1) == "/", match.group(2).upper(), match.group(3).strip()
        if closing:
            if stack[-1][0] == tag:
                stack.pop()
            elif last_leaf == tag:
                pass
            elif any(name == tag for name, _ in stack[1:]):
                # Aggregates left open inside this one (SGML leniency)
                while stack[-1][0] != tag:
                    stack.pop()
                stack.pop()
            else:
                raise OFXParseError(f"unexpected closing tag </{tag}> at offset {match.start()}")
            last_leaf = None
            continue

        if content or tag in LEAF_TAGS:
            _add_child(stack[-1][1], tag, content)
            last_leaf = tag
        else:
            node: dict[str, Any] = {}
            _add_child(stack[-1][1], tag, node)
            stack.append((tag, node))
            last_leaf = None

    if not seen_tag:
        raise OFXParseError("no OFX markup found")
    return root


def _resolve(tree: dict[str, Any], path: tuple[str, ...]) -> Any:
    node: Any = tree
    for key in path:
        if isinstance(node, list):
            node = node[0] if node else None
        if not isinstance(node, dict) or key not in node:
            return None
        node = node[key]
    return node


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _leaf(node: dict[str, Any], key: str) -> str:
    value = node.get(key)
    if isinstance(value, list):
        value = value[0] if value else ""
    return value.strip() if isinstance(value, str) else ""


# ---------------------------------------------------------------------------
# Field normalization
# ---------------------------------------------------------------------------


def normalize_amount(raw: str) -> str:
    """Parse TRNAMT into a signed 2-decimal string; raises ``ValueError``."""
    text = normalize_separators(raw)
    if not text:
        raise ValueError("empty amount")
    try:
        value = Decimal(text)
    except InvalidOperation:
        raise ValueError(f"invalid amount {raw!r}") from None
    if not value.is_finite():
        raise ValueError(f"invalid amount {raw!r}")
    return to_money_string(value)


def parse_ofx_date(raw: str) -> date | None:
    """
    Calendar date from a ``YYYYMMDD...`` string, or None when impossible.

    The constructed date must round-trip to the same year/month/day.
    """
    match = _DATE_PREFIX.match(raw or "")
    if not match:
        return None
    year, month, day = (int(g) for g in match.groups())
    try:
        parsed = date(year, month, day)
    except ValueError:
        return None
    if (parsed.year, parsed.month, parsed.day) != (year, month, day):
        return None
    return parsed


def _fold(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c)).lower()


def classify_transaction(type_code: str, amount: str, memo: str) -> str:
    """credit / debit / other from sign, TRNTYPE, then memo keywords."""
    if is_negative(amount):
        return KIND_DEBIT
    if is_zero(amount):
        return KIND_OTHER
    code = type_code.upper()
    if code in CREDIT_TYPE_CODES:
        return KIND_CREDIT
    if code in DEBIT_TYPE_CODES:
        return KIND_DEBIT
    folded = _fold(memo)
    if any(k in folded for k in CREDIT_KEYWORDS):
        return KIND_CREDIT
    if any(k in folded for k in DEBIT_KEYWORDS):
        return KIND_DEBIT
    return KIND_CREDIT


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _statements(tree: dict[str, Any]) -> list[dict[str, Any]]:
    for path in STATEMENT_PATHS:
        found = _resolve(tree, path)
        if found is None:
            continue
        statements = []
        for trnrs in _as_list(found):
            if not isinstance(trnrs, dict):
                continue
            for key in ("STMTRS", "CCSTMTRS"):
                for stmt in _as_list(trnrs.get(key)):
                    if isinstance(stmt, dict):
                        statements.append(stmt)
        return statements
    return []


def _account(statement: dict[str, Any]) -> OFXAccount:
    acct = statement.get("BANKACCTFROM") or statement.get("CCACCTFROM") or {}
    if isinstance(acct, list):
        acct = acct[0]
    if not isinstance(acct, dict):
        acct = {}
    return OFXAccount(
        account_id=_leaf(acct, "ACCTID") or None,
        bank_id=_leaf(acct, "BANKID") or None,
        account_type=_leaf(acct, "ACCTTYPE") or ("CREDITCARD" if "CCACCTFROM" in statement else None),
        currency=_leaf(statement, "CURDEF") or None,
    )


def _transaction(raw: dict[str, Any]) -> OFXTransaction:
    raw_date = _leaf(raw, "DTPOSTED")
    amount = normalize_amount(_leaf(raw, "TRNAMT"))
    memo = _leaf(raw, "MEMO")
    name = _leaf(raw, "NAME")
    type_code = _leaf(raw, "TRNTYPE").upper()
    posted = parse_ofx_date(raw_date)

    kind = classify_transaction(type_code, amount, memo or name)
    if kind == KIND_DEBIT and not is_negative(amount):
        amount = to_money_string(-Decimal(amount))

    fit_id = _leaf(raw, "FITID")
    synthetic = not fit_id
    if synthetic:
        fit_id = synthetic_fit_id(raw_date[:8], amount, memo or name)

    return OFXTransaction(
        fit_id=fit_id,
        fit_id_synthetic=synthetic,
        posted_date=posted,
        has_valid_date=posted is not None,
        raw_date=raw_date,
        amount=amount,
        kind=kind,
        type_code=type_code,
        memo=memo,
        name=name,
        reference=_leaf(raw, "REFNUM") or None,
        check_number=_leaf(raw, "CHECKNUM") or None,
    )


def parse_ofx(data: bytes | str) -> OFXParseResult:
    """
    Parse an OFX document into transactions, stats and account metadata.

    Raises:
        OFXParseError: the document is structurally unparseable.
    """
    tree = build_tree(decode_ofx(data))
    statements = _statements(tree)

    transactions: list[OFXTransaction] = []
    errors = 0
    for statement in statements:
        tranlist = statement.get("BANKTRANLIST")
        if isinstance(tranlist, list):
            tranlist = tranlist[0] if tranlist else None
        if not isinstance(tranlist, dict):
            continue
        for raw in _as_list(tranlist.get("STMTTRN")):
            if not isinstance(raw, dict):
                errors += 1
                continue
            try:
                transactions.append(_transaction(raw))
            except ValueError:
                errors += 1

    credits = [t for t in transactions if t.kind == KIND_CREDIT]
    debits = [t for t in transactions if t.kind == KIND_DEBIT]
    stats = OFXStats(
        total=len(transactions),
        credits=len(credits),
        debits=len(debits),
        others=len(transactions) - len(credits) - len(debits),
        credit_total=sum_money(t.amount for t in credits),
        debit_total=sum_money(absolute_money(t.amount) for t in debits),
        invalid_dates=sum(1 for t in transactions if not t.has_valid_date),
        errors=errors,
    )
    return OFXParseResult(
        transactions=tuple(transactions),
        stats=stats,
        account=_account(statements[0]) if statements else None,
    )

