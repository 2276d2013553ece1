"""
cli.py -- Command-line test client for the Batangas Class Suspension Advisor.

Simulates the SMS conversation loop locally without Twilio/Flask.
Enter a city to get its suspension status, then use menu commands
(1-3, WHY, ALL, STOP, or word aliases) just like you would via SMS.

Usage:  python cli.py
"""

from dotenv import load_dotenv

from geocoder import MONITORED_CITIES
from parser.intent_parser import parse_intent
from pipeline import assess_city, handle_menu, is_menu_command
from risk.response import format_unknown_city


def main():
    load_dotenv()
    status = None  # CityStatus from the last city query

    print("=== Class Suspension Advisor (CLI) ===")
    print(f"Cities: {', '.join(MONITORED_CITIES)}")
    print("Type a city to get started, or a command (1-3, WHY, ALL, STOP).")
    print("Type 'quit' or 'exit' to leave.\n")

    while True:
        try:
            text = input("> ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\nBye!")
            break

        if not text:
            print("Send a city (e.g. 'Lipa City') to get the class suspension status.\n")
            continue

        if text.lower() in ("quit", "exit"):
            print("Bye!")
            break

        # Menu command
        if is_menu_command(text):
            sms_text, _ = handle_menu(text, status)
            if text.lower() == "stop":
                status = None
            print(f"\n{sms_text}\n")
            continue

        # City
        intent = parse_intent(text)
        if intent["type"] != "city":
            print(f"\n{format_unknown_city(text, MONITORED_CITIES)}\n")
            continue

        status, sms_text, _ = assess_city(intent["city"])
        print(f"\n{sms_text}\n")


if __name__ == "__main__":
    main()
