#!/usr/bin/env python3
"""
Simple example of using the InsureChain SDK against a local Ganache node.
"""
import logging
import os

from insurechain_sdk import ClientConfig, ContractInterface, InsuranceClient, InsureChainError, RpcProtocolError


def main():
    """
    Demonstrate basic usage of the InsuranceClient.

    This example shows how to:
    1. Build the configuration from INSURECHAIN_* environment variables
    2. Open a policy and pay a premium
    3. File a claim and have it adjudicated
    4. Read the policy and claim back from the chain
    """
    logging.basicConfig(level=logging.INFO)

    artifact_path = os.environ.get("INSURANCE_ARTIFACT")
    contract = ContractInterface.from_artifact(artifact_path) if artifact_path else ContractInterface.default()

    try:
        config = ClientConfig.from_env(artifact=contract)
    except ValueError as e:
        print(f"ERROR: {e}")
        return

    client = InsuranceClient(config, contract=contract)
    if not client.is_connected():
        print(f"ERROR: node at {config.rpc_url} is not reachable")
        return

    accounts = client.get_accounts()
    if len(accounts) < 2:
        print("ERROR: the node must expose at least two unlocked accounts")
        return
    insured, adjudicator = accounts[0], accounts[1]

    try:
        # Amounts are in XAF, converted to wei at the configured rate
        creation = client.open_policy("5000000", "250000", 30 * 24 * 3600, insured)
        print(f"Policy {creation.policy_id} opened in tx {creation.transaction_hash}")
        if creation.policy_id is None:
            print("ERROR: no PolicyCreated event in the receipt; cannot continue")
            return

        payment = client.pay_premium(creation.policy_id, "250000", insured)
        print(f"Premium paid in tx {payment.transaction_hash}")

        filing = client.file_claim(creation.policy_id, "1000000", "QmExampleProofReference", insured)
        print(f"Claim {filing.claim_id} filed in tx {filing.transaction_hash}")
        if filing.claim_id is None:
            print("ERROR: no ClaimDeclared event in the receipt; cannot adjudicate")
            return

        decision = client.adjudicate_claim(filing.claim_id, True, adjudicator)
        print(f"Claim approved in tx {decision.transaction_hash}")

        policy = client.get_policy(creation.policy_id)
        claim = client.get_claim(filing.claim_id)
        print(f"Policy balance: {client.converter.from_base_unit(policy.balance)} XAF")
        print(f"Claim paid: {claim.is_paid}")

        print(f"PolicyCreated events so far: {len(client.scan_policy_created_events())}")

    except RpcProtocolError as e:
        print(f"Contract rejected the call: {e.revert_reason or e}")
    except InsureChainError as e:
        print(f"Error talking to the chain: {e}")


if __name__ == "__main__":
    main()
