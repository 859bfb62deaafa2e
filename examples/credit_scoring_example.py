#!/usr/bin/env python3
"""
Encrypted Credit Score - End-to-End Flow

Deploys a scoring contract on a local devnet, submits encrypted financial
data twice for one user, and shows what each party can and cannot see.

Run with: python examples/credit_scoring_example.py
"""

from encscore import (
    InvalidProof,
    LocalDevnet,
    Unauthorized,
)


DEPLOYER = "0xf39fd6e51aad88f6f4ce6ab8827279cfffb92266"
ALICE = "0x70997970c51812dc3a010c7d01b50e0d17dc79c8"
MALLORY = "0x3c44cdddb6a900fa2b585dd299e03d12fa4293bc"


def submit(net, contract, user, income, debt_ratio, repayment_score):
    """Encrypt three values under one proof and submit them."""
    enc = (net.create_encrypted_input(contract.address, user)
           .add32(income)
           .add32(debt_ratio)
           .add32(repayment_score)
           .encrypt())
    contract.submit_credit_data(
        user,
        enc.handles[0], enc.input_proof,
        enc.handles[1], enc.input_proof,
        enc.handles[2], enc.input_proof,
    )
    return enc


def main():
    print("=" * 60)
    print("Encrypted Credit Score Demonstration")
    print("=" * 60)

    net = LocalDevnet()
    contract = net.deploy(DEPLOYER, threshold=50)
    print(f"\nContract: {contract.address}")
    print(f"Confidential protocol id: {contract.confidential_protocol_id()}")

    # Two rounds for the same user
    for round_no in (1, 2):
        submit(net, contract, ALICE, 50000, 30, 85)
        score = net.user_decrypt(contract.get_credit_score(ALICE), ALICE, contract.address)
        qualified = net.user_decrypt(contract.get_qualification_status(ALICE), ALICE, contract.address)
        print(f"\nRound {round_no}")
        print(f"  Score handle: {contract.get_credit_score(ALICE).handle}")
        print(f"  Decrypted by user: score={score} qualified={bool(qualified)}")

    print("\n" + "-" * 60)
    print("Adversarial checks")
    print("-" * 60)

    # Mallory replays Alice's ciphertexts under her own address
    enc = net.create_encrypted_input(contract.address, ALICE).add32(1).add32(1).add32(1).encrypt()
    try:
        contract.submit_credit_data(
            MALLORY,
            enc.handles[0], enc.input_proof,
            enc.handles[1], enc.input_proof,
            enc.handles[2], enc.input_proof,
        )
    except InvalidProof as e:
        print(f"  Replayed inputs rejected: {e}")

    try:
        net.user_decrypt(contract.get_credit_score(ALICE), MALLORY, contract.address)
    except Unauthorized as e:
        print(f"  Foreign decryption refused: {e}")

    print(f"  Mallory has credit data: {contract.has_credit_data(MALLORY)}")

    print("\n" + "=" * 60)
    print("Demonstration complete.")
    print("=" * 60)


if __name__ == "__main__":
    main()
