"""
Certificate Contract ABI
========================

ABI of the AcademicCertificateNFT contract methods and events the ledger
client uses.

Version: 0.1.0
"""

from typing import Any


def _inputs(*pairs: tuple[str, str]) -> list[dict[str, Any]]:
    return [{"name": name, "type": type_, "internalType": type_} for name, type_ in pairs]


CERTIFICATE_CONTRACT_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "issueCertificate",
        "stateMutability": "nonpayable",
        "inputs": _inputs(
            ("student", "address"),
            ("studentName", "string"),
            ("studentId", "string"),
            ("courseName", "string"),
            ("grade", "string"),
            ("certificateType", "string"),
            ("graduationDate", "uint256"),
            ("ipfsHash", "string"),
        ),
        "outputs": _inputs(("", "uint256")),
    },
    {
        "type": "function",
        "name": "verifyCertificate",
        "stateMutability": "view",
        "inputs": _inputs(("tokenId", "uint256")),
        "outputs": _inputs(
            ("exists", "bool"),
            ("isRevoked", "bool"),
            ("studentName", "string"),
            ("courseName", "string"),
            ("institutionName", "string"),
            ("issueDate", "uint256"),
            ("graduationDate", "uint256"),
            ("grade", "string"),
        ),
    },
    {
        "type": "function",
        "name": "revokeCertificate",
        "stateMutability": "nonpayable",
        "inputs": _inputs(("tokenId", "uint256"), ("reason", "string")),
        "outputs": [],
    },
    {
        "type": "function",
        "name": "getCertificatesByStudent",
        "stateMutability": "view",
        "inputs": _inputs(("studentId", "string")),
        "outputs": _inputs(("", "uint256[]")),
    },
    {
        "type": "function",
        "name": "getTotalCertificates",
        "stateMutability": "view",
        "inputs": [],
        "outputs": _inputs(("", "uint256")),
    },
    {
        "type": "event",
        "name": "CertificateIssued",
        "anonymous": False,
        "inputs": [
            {"name": "tokenId", "type": "uint256", "indexed": True},
            {"name": "student", "type": "address", "indexed": True},
            {"name": "institution", "type": "address", "indexed": True},
            {"name": "ipfsHash", "type": "string", "indexed": False},
        ],
    },
    {
        "type": "event",
        "name": "CertificateRevoked",
        "anonymous": False,
        "inputs": [
            {"name": "tokenId", "type": "uint256", "indexed": True},
            {"name": "reason", "type": "string", "indexed": False},
        ],
    },
]
