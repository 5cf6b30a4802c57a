#!/usr/bin/env python3
"""
Consolidation Walkthrough for railmerge

Plays a scripted game on the stored tables up to the consolidation round and
prints the game log. Predecessor certificates are dealt round-robin to the
players so the controlling-owner rules have something to decide.

Usage:
    # Default tables, three players
    python scripts/run_consolidation.py

    # Named players, tables from a custom directory
    python scripts/run_consolidation.py --players Ada,Ben,Cy,Dee --configs-path my_configs

    # Keep the final state
    python scripts/run_consolidation.py --snapshot final_state.json
"""

import argparse
import logging
import sys
from pathlib import Path

from railmerge.engine import CertificateBundle, create_game
from railmerge.models import Holder, RoundKind, Train, spend
from railmerge.storage import ensure_default_config, get_config_repository


def deal_predecessors(game):
    """Hand each predecessor's controlling certificate to a player and seed it with cash and a train."""
    parties = game.state.parties
    first_train = game.config.trains[0]
    for index, predecessor_id in enumerate(game.config.successor.predecessors):
        party = parties[index % len(parties)]
        enterprise = game.get_enterprise(predecessor_id)
        game.ledger.transfer(CertificateBundle([enterprise.controlling_certificate]), Holder.party(party.id))
        spend(game.state.bank, 20 * (index + 1), enterprise)
        enterprise.trains.append(
            Train(
                id=f"{first_train.name}-{index}",
                name=first_train.name,
                distance=first_train.distance,
                price=first_train.price,
                owner_id=enterprise.id,
            )
        )


def play_until_consolidation(game):
    """Advance rounds and phases until the consolidation round has run."""
    while not game.state.consolidated and not game.is_game_over():
        in_operating = game.current_round.kind == RoundKind.OPERATING
        has_next_phase = game.state.phase_index + 1 < len(game.config.phases)
        if in_operating and has_next_phase and not game.state.pending_consolidation:
            game.advance_phase()
        game.finish_round()
        game.advance_round()
    if game.current_round.kind == RoundKind.CONSOLIDATION:
        game.advance_round()


def print_summary(game):
    print("\n" + "=" * 80)
    print("SUMMARY")
    print("=" * 80)
    result = game.last_consolidation
    if result is None:
        print("Consolidation did not happen")
        return
    successor = game.get_enterprise(result.successor_id)
    owner = game.get_party(result.controlling_owner).name if result.controlling_owner else "nobody"
    print(f"{successor.name}: price {game.format_currency(game.share_price(successor.id))}, "
          f"cash {game.format_currency(successor.cash)}, president {owner}")
    print(f"Tokens: {', '.join(t.location or 'spare' for t in successor.tokens)}")
    print(f"Trains: {', '.join(t.name for t in successor.trains)}")
    print(f"\n{'Player':<20} {'Cash':>10} {'Debt':>8} {'Stake':>8}")
    print("-" * 50)
    for party in game.state.parties:
        stake = game.ledger.percent_of(Holder.party(party.id), successor)
        print(f"{party.name:<20} {game.format_currency(party.cash):>10} {party.debt:>8} {stake:>7}%")


def main():
    parser = argparse.ArgumentParser(
        description="Play a scripted game through the consolidation round",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--players",
        default="Ada,Ben,Cy",
        help="Comma-separated player names in seat order (default: Ada,Ben,Cy)",
    )
    parser.add_argument(
        "--configs-path",
        default=None,
        help="Directory holding game tables (default: $RAILMERGE_CONFIGS_PATH or ./configs)",
    )
    parser.add_argument(
        "--snapshot",
        type=Path,
        default=None,
        help="Write the final game state to this JSON file",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show engine debug logging",
    )

    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    players = [name.strip() for name in args.players.split(",") if name.strip()]
    repo = get_config_repository(args.configs_path)
    config_id = ensure_default_config(repo)

    try:
        game = create_game(config_id, repo, players)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

    deal_predecessors(game)
    play_until_consolidation(game)

    print("=" * 80)
    print("GAME LOG")
    print("=" * 80)
    for line in game.get_log():
        print(line)

    print_summary(game)

    if args.snapshot:
        args.snapshot.write_text(game.snapshot(), encoding="utf-8")
        print(f"\nSnapshot written to {args.snapshot}")


if __name__ == "__main__":
    main()
