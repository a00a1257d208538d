import base64

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.x509.oid import NameOID

from pkica.csr import CsrProcessor, read_csr
from pkica.errors import InvalidCsrSignature, MalformedCsr


@pytest.fixture(scope="module")
def key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def generate_csr(private_key, common_name, rsa_padding=None):
    """PEM certificate signing request for ``common_name``.

    ``private_key`` is an RSA key object or unencrypted PEM bytes.
    """
    if isinstance(private_key, bytes):
        private_key = serialization.load_pem_private_key(private_key, password=None)

    csr = x509.CertificateSigningRequestBuilder().subject_name(x509.Name([
        x509.NameAttribute(NameOID.COMMON_NAME, common_name),
    ])).sign(private_key, hashes.SHA256(), rsa_padding=rsa_padding)

    return csr.public_bytes(serialization.Encoding.PEM)


def pss_padding():
    return padding.PSS(mgf=padding.MGF1(hashes.SHA256()), salt_length=padding.PSS.DIGEST_LENGTH)


def tamper_signature(csr_pem: bytes) -> bytes:
    """Flip one bit in the last byte of the request, which is signature data."""
    der = bytearray(x509.load_pem_x509_csr(csr_pem).public_bytes(serialization.Encoding.DER))
    der[-1] ^= 0x01
    body = base64.encodebytes(bytes(der)).replace(b"\n", b"")
    lines = [body[i:i + 64] for i in range(0, len(body), 64)]
    return b"-----BEGIN CERTIFICATE REQUEST-----\n" + b"\n".join(lines) + b"\n-----END CERTIFICATE REQUEST-----\n"


def test_generated_request_parses_and_verifies(key):
    csr_pem = generate_csr(key, "codehost")
    assert b"BEGIN CERTIFICATE REQUEST" in csr_pem

    processor = CsrProcessor()
    csr = processor.parse(csr_pem)
    assert csr.subject.get_attributes_for_oid(NameOID.COMMON_NAME)[0].value == "codehost"
    assert processor.verify(csr) is True
    assert csr.public_key().public_numbers() == key.public_key().public_numbers()


def test_tampered_signature_is_rejected(key):
    tampered = tamper_signature(generate_csr(key, "codehost"))
    processor = CsrProcessor()

    assert processor.verify(processor.parse(tampered)) is False
    with pytest.raises(InvalidCsrSignature):
        processor.load(tampered)


def test_pss_signed_request_verifies(key):
    csr_pem = generate_csr(key, "psshost", rsa_padding=pss_padding())
    processor = CsrProcessor()

    csr = processor.load(csr_pem)
    assert isinstance(csr.signature_algorithm_parameters, padding.PSS)
    assert processor.verify(csr) is True


def test_tampered_pss_request_is_rejected(key):
    tampered = tamper_signature(generate_csr(key, "psshost", rsa_padding=pss_padding()))
    with pytest.raises(InvalidCsrSignature):
        CsrProcessor().load(tampered)


@pytest.mark.parametrize("data", [
    b"",
    b"not a request",
    b"-----BEGIN CERTIFICATE REQUEST-----\nAAAA\n-----END CERTIFICATE REQUEST-----\n",
])
def test_malformed_requests(data):
    with pytest.raises(MalformedCsr):
        CsrProcessor().parse(data)


def test_non_rsa_request_is_rejected():
    ec_key = ec.generate_private_key(ec.SECP256R1())
    csr = x509.CertificateSigningRequestBuilder().subject_name(x509.Name([
        x509.NameAttribute(NameOID.COMMON_NAME, u"ec-host"),
    ])).sign(ec_key, hashes.SHA256())

    with pytest.raises(MalformedCsr):
        CsrProcessor().parse(csr.public_bytes(serialization.Encoding.PEM))


def test_read_csr_from_file(tmp_path, key):
    csr_pem = generate_csr(key, "filehost")
    path = tmp_path / "request.csr"
    path.write_bytes(csr_pem)

    assert read_csr(str(path)) == csr_pem
    assert read_csr(csr_pem) == csr_pem
