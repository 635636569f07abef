"""Built-in Solidity vulnerability patterns.

Matchers run against comment/string-masked source. Reentrancy and
selfdestruct are deliberately absent: the engines carry hand-coded
multi-line rules for those.
"""

from __future__ import annotations

import re

from vulnscope.analysis.patterns.library import VulnerabilityPattern
from vulnscope.analysis.source import SourceText
from vulnscope.constants import Severity

_PRAGMA_RE = re.compile(
    r"\bpragma\s+solidity\s*[\^>=<~\s]*(\d+)\.(\d+)"
)
_SAFEMATH_RE = re.compile(r"\bSafeMath\b")


def _pre_checked_arithmetic(source: SourceText) -> bool:
    """Compiler below 0.8 and no SafeMath in sight."""
    m = _PRAGMA_RE.search(source.masked)
    if m is None:
        return False
    version = (int(m.group(1)), int(m.group(2)))
    return version < (0, 8) and not _SAFEMATH_RE.search(source.masked)


_GUARDS = r"initializer|reinitializer|onlyOwner|onlyRole|onlyAdmin"

CATALOG: tuple[VulnerabilityPattern, ...] = (
    VulnerabilityPattern(
        id="VS-001",
        title="Authorization Through tx.origin",
        description=(
            "tx.origin is the externally owned account that started "
            "the transaction; a malicious intermediate contract can "
            "pass checks written against it"
        ),
        severity=Severity.HIGH,
        category="Access Control",
        matcher=re.compile(r"\btx\.origin\b"),
        recommendations=(
            "Use msg.sender for authorization checks",
            "Reserve tx.origin for rejecting contract callers only",
        ),
        base_confidence=0.85,
        cwe_id="CWE-477",
        swc_id="SWC-115",
        boosters=(re.compile(r"require\s*\(\s*tx\.origin\s*=="),),
        mitigations=(
            re.compile(
                r"tx\.origin\s*==\s*msg\.sender"
                r"|msg\.sender\s*==\s*tx\.origin"
            ),
        ),
    ),
    VulnerabilityPattern(
        id="VS-002",
        title="Unchecked Low-Level Call",
        description=(
            "Return value of a low-level call is discarded; a failed "
            "call will not revert the transaction"
        ),
        severity=Severity.HIGH,
        category="Unchecked Calls",
        matcher=re.compile(
            r"^[ \t]*[\w.\[\]]+\s*\.\s*(?:call|delegatecall|send)"
            r"\s*(?:\{[^}\n]*\})?\s*\(",
            re.MULTILINE,
        ),
        recommendations=(
            "Check the boolean returned by call, delegatecall and send",
            "Revert or handle the failure explicitly",
        ),
        base_confidence=0.75,
        cwe_id="CWE-252",
        swc_id="SWC-104",
    ),
    VulnerabilityPattern(
        id="VS-003",
        title="Integer Overflow and Underflow",
        description=(
            "Arithmetic compiled without built-in overflow checks and "
            "without SafeMath can wrap silently"
        ),
        severity=Severity.HIGH,
        category="Arithmetic",
        matcher=re.compile(
            r"\b\w+(?:\[[^\]\n]+\])?\s*"
            r"(?:[+\-*]=|=\s*[\w.\[\]]+\s*[+\-*]\s*[\w.]+)"
        ),
        recommendations=(
            "Upgrade to Solidity 0.8 or later for checked arithmetic",
            "Otherwise wrap arithmetic in SafeMath",
        ),
        base_confidence=0.6,
        cwe_id="CWE-190",
        swc_id="SWC-101",
        applies=_pre_checked_arithmetic,
    ),
    VulnerabilityPattern(
        id="VS-004",
        title="Floating Pragma",
        description=(
            "Contract may be compiled with a different compiler "
            "version than the one it was tested with"
        ),
        severity=Severity.LOW,
        category="Compiler Version",
        matcher=re.compile(r"\bpragma\s+solidity\s*(?:\^|>=?|~)"),
        recommendations=(
            "Lock the pragma to the exact compiler version used in testing",
        ),
        base_confidence=0.9,
        cwe_id="CWE-664",
        swc_id="SWC-103",
    ),
    VulnerabilityPattern(
        id="VS-005",
        title="Weak Source of Randomness",
        description=(
            "Randomness derived from block attributes can be predicted "
            "or influenced by block producers"
        ),
        severity=Severity.HIGH,
        category="Bad Randomness",
        matcher=re.compile(
            r"\bkeccak256\s*\(\s*abi\.encodePacked\s*\([^;\n]*?"
            r"\b(?:block\.(?:timestamp|difficulty|prevrandao|number|coinbase)"
            r"|blockhash)\b"
        ),
        recommendations=(
            "Use a verifiable randomness source such as Chainlink VRF",
            "Or use a commit-reveal scheme",
        ),
        base_confidence=0.8,
        cwe_id="CWE-330",
        swc_id="SWC-120",
        boosters=(re.compile(r"(?i)\b(?:random\w*|winner|lottery)\b"),),
    ),
    VulnerabilityPattern(
        id="VS-006",
        title="Strict Balance Equality",
        description=(
            "Ether can be forced into a contract, so an exact balance "
            "comparison can be broken by an attacker"
        ),
        severity=Severity.MEDIUM,
        category="Logic Error",
        matcher=re.compile(
            r"(?:\baddress\s*\(\s*this\s*\)|\bthis)\s*\.\s*balance\s*==(?!=)"
            r"|==\s*(?:\baddress\s*\(\s*this\s*\)|\bthis)\s*\.\s*balance\b"
        ),
        recommendations=(
            "Compare balances with >= or <= instead of ==",
            "Track deposits in an internal accounting variable",
        ),
        base_confidence=0.7,
        cwe_id="CWE-667",
        swc_id="SWC-132",
    ),
    VulnerabilityPattern(
        id="VS-007",
        title="Hardcoded Gas Stipend",
        description=(
            "transfer and send forward only 2300 gas, which breaks "
            "recipients whose fallback needs more"
        ),
        severity=Severity.LOW,
        category="External Calls",
        matcher=re.compile(
            r"(?:\bpayable\s*\([^()\n]*\)|\bmsg\.sender|\bowner)"
            r"\s*\.\s*(?:transfer|send)\s*\("
        ),
        recommendations=(
            "Use call with an explicit success check for Ether transfers",
            "Guard the call against reentrancy",
        ),
        base_confidence=0.6,
        cwe_id="CWE-655",
        swc_id="SWC-134",
    ),
    VulnerabilityPattern(
        id="VS-008",
        title="Unbounded Loop Over Dynamic Array",
        description=(
            "Loop bound grows with user-controlled storage and can "
            "exceed the block gas limit"
        ),
        severity=Severity.MEDIUM,
        category="Denial of Service",
        matcher=re.compile(
            r"\bfor\s*\([^;\n]*;[^;\n]*<=?\s*[\w.\[\]]+\.length\b"
        ),
        recommendations=(
            "Paginate iteration over dynamic arrays",
            "Prefer pull over push patterns for payouts",
        ),
        base_confidence=0.55,
        cwe_id="CWE-400",
        swc_id="SWC-128",
        boosters=(re.compile(r"\.push\s*\("),),
    ),
    VulnerabilityPattern(
        id="VS-009",
        title="Signature Malleability",
        description=(
            "Raw ecrecover accepts malleable signatures and returns "
            "address(0) on failure"
        ),
        severity=Severity.HIGH,
        category="Cryptography",
        matcher=re.compile(r"\becrecover\s*\("),
        recommendations=(
            "Use OpenZeppelin ECDSA.recover",
            "Reject address(0) and enforce a low-s signature value",
        ),
        base_confidence=0.65,
        cwe_id="CWE-347",
        swc_id="SWC-117",
        mitigations=(re.compile(r"\bECDSA\b|address\s*\(\s*0\s*\)"),),
    ),
    VulnerabilityPattern(
        id="VS-010",
        title="Unprotected Initializer",
        description=(
            "Public initialize function without an initializer guard "
            "or access modifier can be called by anyone"
        ),
        severity=Severity.HIGH,
        category="Access Control",
        matcher=re.compile(
            r"\bfunction\s+initialize\s*\([^)]*\)"
            rf"(?:(?!\b(?:{_GUARDS})\b)[^{{;])*\b(?:public|external)\b"
            rf"(?:(?!\b(?:{_GUARDS})\b)[^{{;])*\{{"
        ),
        recommendations=(
            "Add the initializer modifier from OpenZeppelin Initializable",
            "Call _disableInitializers in the implementation constructor",
        ),
        base_confidence=0.75,
        cwe_id="CWE-665",
    ),
    VulnerabilityPattern(
        id="VS-011",
        title="Inline Assembly Usage",
        description=(
            "Inline assembly bypasses compiler safety checks and is "
            "hard to audit"
        ),
        severity=Severity.INFO,
        category="Code Quality",
        matcher=re.compile(r"\bassembly\b[^{\n]*\{"),
        recommendations=(
            "Limit assembly to small, well-documented blocks",
        ),
        base_confidence=0.9,
        cwe_id="CWE-1104",
    ),
    VulnerabilityPattern(
        id="VS-012",
        title="Timestamp Dependence",
        description=(
            "block.timestamp can be nudged by block producers within "
            "a small window"
        ),
        severity=Severity.LOW,
        category="Bad Randomness",
        matcher=re.compile(r"\bblock\.timestamp\b"),
        recommendations=(
            "Tolerate a drift of several seconds in time-based logic",
            "Never derive randomness from block.timestamp",
        ),
        base_confidence=0.6,
        cwe_id="CWE-829",
        swc_id="SWC-116",
    ),
)
