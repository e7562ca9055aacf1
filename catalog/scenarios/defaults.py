"""Built-in attack scenarios for every vulnerability kind.

Each action only uses the public interface shared by an exemplar's vulnerable
and secure programs, so the same scenario runs unchanged against both.
"""

import hashlib

from catalog.exemplars.base import VulnerabilityKind as K
from catalog.exemplars.logic_errors import REWARD_RATE_BPS
from catalog.exemplars.random_manipulation import commitment_for
from catalog.exemplars.runtime import U64_MAX
from catalog.exemplars.inadequate_events import monitor
from catalog.exemplars.signature_verification import sign_payload
from catalog.scenarios.base import AttackScenario, ScenarioTable

SCENARIO_TABLE_VERSION = "1"

ATTACKER = "attacker"


# Reentrancy

def reentrant_withdrawal(program, setup):
    program.fund_reserves(setup["vault_reserves"])
    program.deposit(ATTACKER, setup["deposit"])
    remaining = [setup["reentries"]]

    def reenter(vault, amount):
        if remaining[0] > 0:
            remaining[0] -= 1
            vault.withdraw(ATTACKER, amount)

    program.set_receiver(ATTACKER, reenter)
    program.withdraw(ATTACKER, setup["deposit"])
    return {"deposited": setup["deposit"], "withdrawn": program.paid_out.get(ATTACKER, 0)}


# Integer overflow

def deposit_at_max_balance(program, setup):
    program.open_account(ATTACKER, setup["balance"])
    after = program.add_tokens(ATTACKER, setup["deposit"])
    return {"balance_before": setup["balance"], "deposit": setup["deposit"], "balance_after": after}


def withdraw_full_balance(program, setup):
    program.open_account(ATTACKER, setup["balance"])
    after = program.remove_tokens(ATTACKER, setup["withdraw"])
    return {"balance_before": setup["balance"], "withdraw": setup["withdraw"], "balance_after": after}


# Unchecked inputs

def invalid_transfer(program, setup):
    program.open_account(setup["sender"], setup["balance"])
    program.transfer(setup["sender"], setup["recipient"], setup["amount"])
    return {
        "accepted": True,
        "amount": setup["amount"],
        "self_transfer": setup["sender"] == setup["recipient"],
        "max_transfer": setup["max_transfer"],
    }


def delegate_flood(program, setup):
    owner = setup["owner"]
    program.open_account(owner)
    for delegate in setup["delegates"]:
        program.add_delegate(owner, delegate)
    return {"owner": owner, "delegates": list(program.delegates[owner]), "max_delegates": setup["max_delegates"]}


def _accepted_invalid_transfer(obs):
    return obs["accepted"] and (obs["amount"] <= 0 or obs["amount"] > obs["max_transfer"] or obs["self_transfer"])


def _delegate_list_abused(obs):
    delegates = obs["delegates"]
    return (
        obs["owner"] in delegates
        or len(set(delegates)) != len(delegates)
        or len(delegates) > obs["max_delegates"]
    )


# Oracle manipulation

def spot_price_liquidation(program, setup):
    start = setup["start_time"]
    program.update_price(setup["initial_price"], start)
    program.open_position("victim", setup["collateral"], setup["loan"])
    now = start + setup["attack_delay"]
    program.update_price(setup["manipulated_price"], now)
    seized = program.liquidate("victim", ATTACKER, now)
    return {"liquidated": "victim" not in program.positions, "seized": seized}


# Access control

def unauthorized_fee_change(program, setup):
    program.initialize(setup["admin"])
    program.set_fee_percentage(setup["caller"], setup["new_fee"])
    return {
        "fee": program.fee_bps,
        "new_fee": setup["new_fee"],
        "caller_authorized": program.has_role(setup["caller"], setup["required_role"]),
    }


def ownership_takeover(program, setup):
    program.initialize(setup["admin"])
    program.create_account(setup["account"], setup["victim"], setup["balance"])
    program.transfer_ownership(setup["caller"], setup["account"], setup["victim"], setup["caller"])
    return {"owner": program.accounts[setup["account"]]["owner"], "caller": setup["caller"]}


# Denial of service

def refund_griefing(program, setup):
    for bidder, amount in setup["bids"].items():
        program.place_bid(bidder, amount)
    for bidder in setup["rejecting_bidders"]:
        program.reject_refunds(bidder)
    settlement = program.end_auction()
    return {"ended": program.ended, "winner": settlement["winner"]}


def bidder_flood(program, setup):
    for i in range(setup["bidders"]):
        program.place_bid(f"bidder-{i}", setup["bid"] + i)
    return {"bidders": len(program.bids), "max_bidders": setup["max_bidders"]}


# Illicit fee collection

def fee_recipient_hijack(program, setup):
    program.initialize(setup["fee_admin"], setup["reserve_a"], setup["reserve_b"])
    program.set_fee_recipient(ATTACKER, ATTACKER)
    program.fund("alice", sum(setup["swaps"]))
    for amount in setup["swaps"]:
        program.swap("alice", amount)
    return {"attacker_fees": program.fee_balances.get(ATTACKER, 0)}


def hidden_swap_fee(program, setup):
    program.initialize(setup["fee_admin"], setup["reserve_a"], setup["reserve_b"])
    program.fund("alice", setup["amount_in"])
    quoted = program.quote(setup["amount_in"])
    received = program.swap("alice", setup["amount_in"])
    return {"quoted": quoted, "received": received}


# Flash loan

def flash_loan_liquidation(program, setup):
    program.initialize(setup["pool_collateral"], setup["pool_quote"], setup["flash_liquidity"])
    for step in range(setup["price_observations"]):
        program.observe_price(setup["start_time"] + step * 60)
    program.open_position("victim", setup["victim_collateral"], setup["victim_debt"])
    program.fund(ATTACKER, "Q", setup["attacker_quote"])

    def attack(market, borrower, amount):
        market.swap_c_for_q(borrower, amount)
        market.liquidate(borrower, "victim")
        market.swap_q_for_c(borrower, market.wallet(borrower)["Q"])

    program.flash_loan(ATTACKER, setup["borrow"], attack)
    return {
        "victim_liquidated": "victim" not in program.positions,
        "attacker_collateral": program.wallet(ATTACKER)["C"],
    }


# Logic errors

def start_after_end(program, setup):
    program.create_auction("a1", setup["start_time"], setup["end_time"], setup["reserve_price"])
    program.start_auction("a1", setup["now"])
    auction = program.auctions["a1"]
    return {"state": auction["state"].value, "now": setup["now"], "end_time": setup["end_time"]}


def bid_after_end(program, setup):
    program.create_auction("a1", setup["start_time"], setup["end_time"], setup["reserve_price"])
    program.start_auction("a1", setup["start_time"])
    program.place_bid("a1", ATTACKER, setup["bid"], setup["bid_time"])
    return {"accepted": program.auctions["a1"]["highest_bidder"] == ATTACKER,
            "bid_time": setup["bid_time"], "end_time": setup["end_time"]}


def repeated_reward_claim(program, setup):
    program.fund_rewards(setup["reward_pool"])
    program.stake(ATTACKER, setup["stake"], 0)
    claimed = 0
    for _ in range(setup["claims"]):
        claimed += program.claim_rewards(ATTACKER, setup["claim_time"])
    entitled = setup["stake"] * setup["claim_time"] * REWARD_RATE_BPS // 10_000
    return {"claimed": claimed, "entitled": entitled}


def premature_finalize(program, setup):
    program.create_auction("a1", setup["start_time"], setup["end_time"], setup["reserve_price"])
    program.start_auction("a1", setup["start_time"])
    program.place_bid("a1", ATTACKER, setup["bid"], setup["start_time"])
    winner = program.finalize_auction("a1", setup["finalize_time"])
    return {"winner": winner, "finalize_time": setup["finalize_time"], "end_time": setup["end_time"]}


# Random manipulation

def timed_lottery_draw(program, setup):
    participants = setup["participants"]
    target = participants.index(ATTACKER)
    seed, salt = bytes.fromhex(setup["seed"]), bytes.fromhex(setup["salt"])
    lottery = program.open_lottery(participants, commitment_for(seed, salt))
    # The attacker times the draw for a block where the clock picks them.
    for _ in range(setup["max_blocks"]):
        clock = program.clock()
        if (clock["timestamp"] ^ clock["block"]) % len(participants) == target:
            break
        program.advance_block()
    winner = program.draw_winner(lottery, {"seed": setup["seed"], "salt": setup["salt"]})
    return {"winner": winner}


# Signature verification

def _signed_transfer_fixture(program, setup):
    key = bytes.fromhex(setup["victim_key"])
    program.register_account("victim", key, setup["victim_balance"])
    program.register_account(ATTACKER, bytes.fromhex(setup["attacker_key"]))
    program.register_account("bob", bytes.fromhex(setup["attacker_key"])[::-1])
    return key


def redirected_signature(program, setup):
    key = _signed_transfer_fixture(program, setup)
    payload = program.signing_payload("victim", "bob", setup["amount"], 0)
    signature = sign_payload(key, payload)
    program.transfer("victim", ATTACKER, setup["amount"], 0, signature)
    return {"attacker_balance": program.balances[ATTACKER]}


def replayed_signature(program, setup):
    key = _signed_transfer_fixture(program, setup)
    payload = program.signing_payload("victim", ATTACKER, setup["amount"], 0)
    signature = sign_payload(key, payload)
    for _ in range(setup["submissions"]):
        program.transfer("victim", ATTACKER, setup["amount"], 0, signature)
    return {"received": program.balances[ATTACKER], "authorized": setup["amount"]}


# Account confusion

def foreign_vault_withdrawal(program, setup):
    program.open_vault("victim", setup["victim_vault"], setup["victim_balance"])
    program.open_vault(ATTACKER, setup["attacker_vault"], 0)
    program.withdraw(ATTACKER, setup["victim_vault"], setup["amount"])
    return {"attacker_received": program.wallets.get(ATTACKER, 0)}


# Front-running

def sandwich_attack(program, setup):
    program.initialize(setup["reserve_a"], setup["reserve_b"])
    program.fund("victim", "A", setup["victim_amount"])
    program.fund(ATTACKER, "A", setup["attacker_capital"])
    program.submit_swap("victim", "A", setup["victim_amount"], setup["victim_min_out"])

    visible = [
        order for order in program.pending_orders()
        if order["trader"] != ATTACKER and order.get("token_in") == "A"
    ]
    if visible:
        target = visible[0]
        expected = program.quote("A", setup["attacker_capital"])
        program.submit_swap(ATTACKER, "A", setup["attacker_capital"], 0, target["priority_fee"] + 1)
        program.submit_swap(ATTACKER, "B", expected, 0, target["priority_fee"])
    program.process_block()

    wallet = program.wallet(ATTACKER)
    return {
        "attacker_profit": wallet["A"] - setup["attacker_capital"],
        "victim_received": program.wallet("victim")["B"],
    }


# Inadequate events

def silent_treasury_drain(program, setup):
    program.initialize(setup["admin"], setup["treasury"])
    program.withdraw_treasury(setup["admin"], ATTACKER, setup["amount"])
    return {"moved": setup["treasury"] - program.treasury, "observed": monitor(program.events)["withdrawn"]}


def silent_admin_change(program, setup):
    program.initialize(setup["admin"], setup["treasury"])
    program.change_admin(setup["admin"], ATTACKER)
    return {"admin_changed": program.admin == ATTACKER,
            "observed_changes": monitor(program.events)["admin_changes"]}


# Storage management

def foreign_account_write(program, setup):
    program.allocate(setup["address"], setup["size"], owner=setup["owner"])
    before = bytes(program.accounts[setup["address"]]["data"])
    program.increment(setup["address"])
    account = program.accounts[setup["address"]]
    return {
        "modified": bytes(account["data"]) != before,
        "owned_by_program": account["owner"] == program.program_id,
    }


def capacity_overflow(program, setup):
    program.allocate(setup["address"], setup["size"])
    for value in range(1, setup["items"] + 1):
        program.append_item(setup["address"], value)
    return {"allocated": setup["size"], "data_len": len(program.accounts[setup["address"]]["data"])}


_SIG_VICTIM_KEY = hashlib.sha256(b"victim-secret").hexdigest()
_SIG_ATTACKER_KEY = hashlib.sha256(b"attacker-secret").hexdigest()


def default_scenario_table() -> ScenarioTable:
    """Scenario table covering every vulnerability kind."""
    scenarios = [
        AttackScenario(
            K.REENTRANCY, 1, "reentrant-withdrawal",
            {"deposit": 100, "vault_reserves": 1000, "reentries": 1},
            reentrant_withdrawal,
            lambda obs: obs["withdrawn"] > obs["deposited"],
            "Receiver callback re-enters withdraw before the balance is debited.",
        ),
        AttackScenario(
            K.INTEGER_OVERFLOW, 1, "deposit-at-max-balance",
            {"balance": U64_MAX, "deposit": 1},
            deposit_at_max_balance,
            lambda obs: obs["balance_after"] < obs["balance_before"],
            "Depositing into a full u64 balance wraps it to zero.",
        ),
        AttackScenario(
            K.INTEGER_OVERFLOW, 2, "fee-underflow",
            {"balance": 1000, "withdraw": 1000},
            withdraw_full_balance,
            lambda obs: obs["balance_after"] > obs["balance_before"],
            "Withdrawing the whole balance underflows when the fee is subtracted.",
        ),
        AttackScenario(
            K.UNCHECKED_INPUT, 1, "zero-amount-transfer",
            {"sender": ATTACKER, "recipient": ATTACKER, "balance": 1000, "amount": 0,
             "max_transfer": 1_000_000_000_000},
            invalid_transfer,
            _accepted_invalid_transfer,
            "A zero-amount self-transfer is accepted and logged.",
        ),
        AttackScenario(
            K.UNCHECKED_INPUT, 2, "delegate-flood",
            {"owner": ATTACKER, "max_delegates": 5,
             "delegates": [ATTACKER, "mallory", "mallory", "d1", "d2", "d3", "d4", "d5"]},
            delegate_flood,
            _delegate_list_abused,
            "Self, duplicate and excess delegates are all accepted.",
        ),
        AttackScenario(
            K.ORACLE_MANIPULATION, 1, "spot-price-liquidation",
            {"initial_price": 100, "manipulated_price": 50, "collateral": 10, "loan": 700,
             "start_time": 1000, "attack_delay": 60},
            spot_price_liquidation,
            lambda obs: obs["liquidated"],
            "A single manipulated price update makes a healthy position liquidatable.",
        ),
        AttackScenario(
            K.ACCESS_CONTROL, 1, "unauthorized-fee-change",
            {"caller": ATTACKER, "required_role": "admin", "admin": "admin", "new_fee": 5000},
            unauthorized_fee_change,
            lambda obs: obs["fee"] == obs["new_fee"] and not obs["caller_authorized"],
            "A caller without the admin role sets the protocol fee.",
        ),
        AttackScenario(
            K.ACCESS_CONTROL, 2, "ownership-takeover",
            {"caller": ATTACKER, "admin": "admin", "victim": "alice", "account": "alice-vault",
             "balance": 5000},
            ownership_takeover,
            lambda obs: obs["owner"] == obs["caller"],
            "Naming the victim as the claimed owner transfers their account.",
        ),
        AttackScenario(
            K.DENIAL_OF_SERVICE, 1, "refund-griefing",
            {"bids": {"alice": 100, ATTACKER: 50, "bob": 200}, "rejecting_bidders": [ATTACKER]},
            refund_griefing,
            lambda obs: not obs["ended"],
            "A bidder whose account rejects refunds keeps the auction from ending.",
            max_units=10_000,
        ),
        AttackScenario(
            K.DENIAL_OF_SERVICE, 2, "bidder-flood",
            {"bidders": 150, "bid": 10, "max_bidders": 100},
            bidder_flood,
            lambda obs: obs["bidders"] > obs["max_bidders"],
            "Unbounded bidder storage grows past what settlement can process.",
        ),
        AttackScenario(
            K.ILLICIT_FEE_COLLECTION, 1, "fee-recipient-hijack",
            {"fee_admin": "treasury", "reserve_a": 1_000_000, "reserve_b": 1_000_000,
             "swaps": [1000, 2000]},
            fee_recipient_hijack,
            lambda obs: obs["attacker_fees"] > 0,
            "Anyone can point swap fees at their own account.",
        ),
        AttackScenario(
            K.ILLICIT_FEE_COLLECTION, 2, "hidden-swap-fee",
            {"fee_admin": "treasury", "reserve_a": 1_000_000, "reserve_b": 1_000_000,
             "amount_in": 10_000},
            hidden_swap_fee,
            lambda obs: obs["received"] < obs["quoted"],
            "An undisclosed fee is skimmed from swap output.",
        ),
        AttackScenario(
            K.FLASH_LOAN, 1, "flash-loan-liquidation",
            {"pool_collateral": 1000, "pool_quote": 100_000, "flash_liquidity": 1000,
             "borrow": 500, "victim_collateral": 10, "victim_debt": 700,
             "attacker_quote": 5000, "start_time": 1000, "price_observations": 5},
            flash_loan_liquidation,
            lambda obs: obs["victim_liquidated"],
            "Borrowed collateral crashes the pool price to liquidate a healthy position.",
        ),
        AttackScenario(
            K.LOGIC_ERROR, 1, "start-after-end",
            {"start_time": 100, "end_time": 200, "reserve_price": 10, "now": 250},
            start_after_end,
            lambda obs: obs["state"] == "Active" and obs["now"] >= obs["end_time"],
            "An auction is activated after its end time.",
        ),
        AttackScenario(
            K.LOGIC_ERROR, 2, "bid-after-end",
            {"start_time": 100, "end_time": 200, "reserve_price": 10, "bid": 50, "bid_time": 300},
            bid_after_end,
            lambda obs: obs["accepted"] and obs["bid_time"] >= obs["end_time"],
            "A bid placed after the end time is accepted.",
        ),
        AttackScenario(
            K.LOGIC_ERROR, 3, "repeated-reward-claim",
            {"reward_pool": 10_000, "stake": 1000, "claim_time": 100, "claims": 2},
            repeated_reward_claim,
            lambda obs: obs["claimed"] > obs["entitled"],
            "Claiming twice pays the same rewards twice.",
        ),
        AttackScenario(
            K.LOGIC_ERROR, 4, "premature-finalize",
            {"start_time": 100, "end_time": 200, "reserve_price": 10, "bid": 50,
             "finalize_time": 160},
            premature_finalize,
            lambda obs: obs["winner"] is not None and obs["finalize_time"] < obs["end_time"],
            "The auction is finalized while bidding is still open.",
        ),
        AttackScenario(
            K.RANDOM_MANIPULATION, 1, "timed-lottery-draw",
            {"participants": ["alice", "bob", "carol", ATTACKER], "max_blocks": 64,
             "seed": "05a1c3e7", "salt": "9f8e7d6c"},
            timed_lottery_draw,
            lambda obs: obs["winner"] == ATTACKER,
            "The attacker picks the block whose clock values select them.",
        ),
        AttackScenario(
            K.SIGNATURE_VERIFICATION, 1, "redirected-signature",
            {"victim_key": _SIG_VICTIM_KEY, "attacker_key": _SIG_ATTACKER_KEY,
             "victim_balance": 1000, "amount": 100},
            redirected_signature,
            lambda obs: obs["attacker_balance"] > 0,
            "A signature meant for bob is replayed with the attacker as recipient.",
        ),
        AttackScenario(
            K.SIGNATURE_VERIFICATION, 2, "replayed-signature",
            {"victim_key": _SIG_VICTIM_KEY, "attacker_key": _SIG_ATTACKER_KEY,
             "victim_balance": 1000, "amount": 100, "submissions": 2},
            replayed_signature,
            lambda obs: obs["received"] > obs["authorized"],
            "One signed transfer is submitted twice.",
        ),
        AttackScenario(
            K.ACCOUNT_CONFUSION, 1, "foreign-vault-withdrawal",
            {"victim_vault": "vault-victim", "attacker_vault": "vault-attacker",
             "victim_balance": 1000, "amount": 1000},
            foreign_vault_withdrawal,
            lambda obs: obs["attacker_received"] > 0,
            "The attacker passes the victim's vault to withdraw.",
        ),
        AttackScenario(
            K.FRONT_RUNNING, 1, "sandwich-attack",
            {"reserve_a": 1_000_000, "reserve_b": 1_000_000, "victim_amount": 100_000,
             "victim_min_out": 0, "attacker_capital": 100_000},
            sandwich_attack,
            lambda obs: obs["attacker_profit"] > 0,
            "A visible pending swap is sandwiched for profit.",
        ),
        AttackScenario(
            K.INADEQUATE_EVENTS, 1, "silent-treasury-drain",
            {"admin": "admin", "treasury": 10_000, "amount": 9_000},
            silent_treasury_drain,
            lambda obs: obs["moved"] > obs["observed"],
            "A treasury withdrawal leaves no trace for monitors.",
        ),
        AttackScenario(
            K.INADEQUATE_EVENTS, 2, "silent-admin-change",
            {"admin": "admin", "treasury": 10_000},
            silent_admin_change,
            lambda obs: obs["admin_changed"] and obs["observed_changes"] == 0,
            "An admin handover emits no event.",
        ),
        AttackScenario(
            K.STORAGE_MANAGEMENT, 1, "foreign-account-write",
            {"address": "data-1", "size": 48, "owner": "other11111111111111111111111111111"},
            foreign_account_write,
            lambda obs: obs["modified"] and not obs["owned_by_program"],
            "The program writes to an account another program owns.",
        ),
        AttackScenario(
            K.STORAGE_MANAGEMENT, 2, "capacity-overflow",
            {"address": "data-1", "size": 48, "items": 6},
            capacity_overflow,
            lambda obs: obs["data_len"] > obs["allocated"],
            "Appending past capacity grows data beyond its allocation.",
        ),
    ]
    return ScenarioTable(scenarios, version=SCENARIO_TABLE_VERSION)
