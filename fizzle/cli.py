"""
Fizzle CLI - Command-line interface for the engine.

Usage:
    fizzle cards                   List the card catalog
    fizzle play [--economy E]      Play a game in the terminal
    fizzle serve [--port P]        Run the HTTP API
"""

import argparse
import asyncio
import logging
import sys


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Fizzle - LLM-Narrated Card Battle Engine",
        prog="fizzle",
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level (DEBUG, INFO, WARNING, ...)")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Cards command
    subparsers.add_parser("cards", help="List playable cards and tokens")

    # Play command
    play_parser = subparsers.add_parser("play", help="Play a game in the terminal")
    play_parser.add_argument("--economy", default="mana", choices=["mana", "single_play"], help="Resource economy")
    play_parser.add_argument("--seed", type=int, help="Seed for a reproducible shuffle")
    play_parser.add_argument("--offline", action="store_true", help="Never call the language model")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)
    serve_parser.add_argument("--reload", action="store_true", help="Auto-reload on code changes")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "cards":
        cmd_cards(args)
    elif args.command == "play":
        cmd_play(args)
    elif args.command == "serve":
        cmd_serve(args)
    else:
        parser.print_help()
        sys.exit(1)


def cmd_cards(args):
    """List the catalog."""
    from .catalog import list_playable_cards, list_tokens

    print("Cards:")
    for card in list_playable_cards():
        print(f"  {_describe_card(card)}")
    print("\nTokens:")
    for card in list_tokens():
        print(f"  {_describe_card(card)}")


def cmd_serve(args):
    """Run the API with uvicorn."""
    import uvicorn

    uvicorn.run("fizzle.api.app:app", host=args.host, port=args.port, reload=args.reload)


def cmd_play(args):
    """Play against the proposer in the terminal."""
    from .engine_core.config import RulesConfig
    from .proposer import AnthropicProposer, FirstLegalProposer
    from .session import SessionManager

    proposer = None if args.offline else AnthropicProposer.from_env()
    if proposer is None:
        print("Opponent: offline (set ANTHROPIC_API_KEY for a narrated opponent)")
        proposer = FirstLegalProposer()

    manager = SessionManager()
    session = manager.create_session(
        config=RulesConfig.from_name(args.economy),
        random_seed=args.seed,
        proposer=proposer,
    )
    asyncio.run(_play(session))


HELP = """Commands:
  p N            play card N from your hand
  a ID [TARGET]  attack with creature ID (TARGET: hero or an enemy instance id)
  c ID           let creature ID decide what to do
  b              batched combat with every ready creature
  e              end your turn
  s              show the table
  r              restart
  q              quit"""


async def _play(session):
    from .session import GameLoop, LoopState
    from .engine_core.state import Role

    loop = GameLoop(session)
    session.presentation.subscribe(lambda event: event.narrative and print(f"  > {event.narrative}"))

    print(session.game_state.log[0].narrative)
    print(HELP)
    _show(session.game_state)

    while True:
        try:
            line = input("\nfizzle> ").strip()
        except EOFError:
            break
        if not line:
            continue

        command, *rest = line.split()
        try:
            if command == "q":
                break
            elif command == "p" and rest:
                result = await loop.play_card(int(rest[0]))
            elif command == "a" and rest:
                target = rest[1] if len(rest) > 1 and rest[1] != "hero" else Role.OPPONENT
                result = await loop.attack(rest[0], target)
            elif command == "c" and rest:
                result = await loop.creature_action(rest[0])
            elif command == "b":
                result = await loop.combat()
            elif command == "e":
                result = await loop.end_turn(role=session.human_role)
            elif command == "r":
                result = await loop.restart()
            elif command == "s":
                _show(session.game_state)
                continue
            else:
                print(HELP)
                continue
        except ValueError:
            print(HELP)
            continue

        for error in result.errors:
            print(f"  ! {error}")
        _show(session.game_state)
        if result.loop_state == LoopState.GAME_OVER:
            print("\nGame over. 'r' to play again, 'q' to quit.")


def _describe_card(card) -> str:
    stats = f" {card.attack}/{card.health}" if card.is_creature else ""
    tag = f" [{card.special_effect}]" if card.special_effect else ""
    return f"{card.name} ({card.cost}){stats}{tag} - {card.flavor}"


def _show(state):
    from .engine_core.state import Role

    for role in (Role.OPPONENT, Role.PLAYER):
        player = state.get_player(role)
        print(f"\n{role.value.upper()}  health {player.health}  mana {player.mana}/{player.max_mana}"
              f"  hand {len(player.hand)}  deck {len(player.deck)}")
        for creature in player.field:
            ready = "*" if creature.can_attack else " "
            statuses = ",".join(s.value for s in creature.statuses)
            print(f"  {ready} {creature.instance_id}: {creature.name} "
                  f"{creature.current_attack}/{creature.current_health} {statuses}")

    print("\nYour hand:")
    for index, card in enumerate(state.player.hand):
        print(f"  {index}: {_describe_card(card)}")


if __name__ == "__main__":
    main()
