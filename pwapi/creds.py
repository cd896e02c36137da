"""Loads and saves credentials kept on the local file system, for use with pwapi."""
import argparse
import base64
import getpass
import json
import logging

from pathlib import Path

from .oauth import OAuthCredentials

DEFAULT_PX = Path.home() / ".px.txt"

log = logging.getLogger(__name__)


def load_px(px_file: Path = DEFAULT_PX) -> dict:
    """Loads the specified password file if it exists.  Returns a dictionary with username/passwords that were found

    Args:
        px_file (Path, optional): The path to the password file. Defaults to DEFAULT_PX.

    Raises:
        FileNotFoundError: If a file at Path `px_file` does not exist on the local file system.

    Returns:
        dict: A dict with credentials such that each key is the username and each value is the password.
    """
    if not px_file.is_file():
        raise FileNotFoundError(f"'{px_file}' does not exist or is a directory.  Create it with save_px() first.")

    return dict(line.split("\t", 1) for line in base64.b64decode(px_file.read_text().encode()).decode().strip().splitlines())


def save_px(pxl: dict, px_file: Path = DEFAULT_PX) -> None:
    """Writes username/password pairs to a password file, merging them into any entries already saved there.

    Args:
        pxl (dict): A dict such that each key is the username and each value is the password.
        px_file (Path, optional): The path to the password file. Defaults to DEFAULT_PX.

    Raises:
        ValueError: If a username or password contains a tab or a line break.
    """
    if any(c in s for s in (*pxl.keys(), *pxl.values()) for c in "\t\r\n"):
        raise ValueError("Usernames and passwords cannot contain tabs or line breaks")

    merged = (load_px(px_file) if px_file.is_file() else {}) | pxl

    log.info("Saving %d credential(s) to '%s'", len(merged), px_file)
    px_file.write_text(base64.b64encode("\n".join(f"{k}\t{v}" for k, v in merged.items()).encode()).decode())


def load_oauth(path: Path) -> OAuthCredentials:
    """Loads OAuth credentials from a json file.  The file may use the keys of `OAuthCredentials` (`consumer_key`, `consumer_secret`, `token_key`, `token_secret`) or the `gConsumerKey`-style keys of serialized Toolforge sessions.

    Args:
        path (Path): The json file to read.

    Raises:
        FileNotFoundError: If `path` does not exist.
        ValueError: If the file does not contain a consumer key and secret.

    Returns:
        OAuthCredentials: The credentials in the file.
    """
    if not path.is_file():
        raise FileNotFoundError(f"'{path}' does not exist or is a directory")

    j = json.loads(path.read_text())
    if "consumer_key" in j:
        if not j.get("consumer_secret"):
            raise ValueError(f"'{path}' is missing 'consumer_secret'")

        return OAuthCredentials(j["consumer_key"], j["consumer_secret"], j.get("token_key"), j.get("token_secret"))

    return OAuthCredentials.from_json(j)


def _user_says_no(question: str) -> bool:
    """Ask the user a question via interactive command line.

    Args:
        question (str): The question to ask.  `" (y/N): "` will be automatically appended to the question.

    Returns:
        bool: True if the user responded with something other than `"y"` or `"yes"`.
    """
    return input(question + " (y/N): ").strip().lower() not in ("y", "yes")


def prompt_px(px_file: Path = DEFAULT_PX) -> int:
    """Interactively asks for username/password combos and saves them to `px_file`.

    Args:
        px_file (Path, optional): The password file to save to.  Existing entries are kept unless overwritten. Defaults to DEFAULT_PX.

    Returns:
        int: The number of entries that were saved.
    """
    pxl = {}

    while True:
        print("Please enter the username/password combo(s) you would like to use.")
        u = input("Username: ")
        p = getpass.getpass()

        if p != getpass.getpass("Confirm Password: "):
            print("ERROR: Entered passwords do not match")
            if _user_says_no("Try again?"):
                break
        else:
            pxl[u] = p
            if _user_says_no("Continue?"):
                break

    if not pxl:
        print("WARNING: You did not make any entries.  Doing nothing.")
        return 0

    save_px(pxl, px_file)
    print(f"Entries successfully written out to '{px_file}'")
    return len(pxl)


def main():
    """Main driver, to be used when this module is invoked via CLI."""
    cli_parser = argparse.ArgumentParser(description="pwapi credential manager")
    cli_parser.add_argument("--px-path", type=Path, default=DEFAULT_PX, dest="px_path", help="The local path of the password file")
    cli_parser.add_argument("--show", action="store_true", help="List the usernames saved in the password file instead of adding entries")
    args = cli_parser.parse_args()

    if args.show:
        try:
            print("\n".join(load_px(args.px_path)))
        except FileNotFoundError as e:
            print(e)
    else:
        try:
            prompt_px(args.px_path)
        except KeyboardInterrupt:
            print("\nkeyboard interrupt, no changes will be made.")


if __name__ == "__main__":
    main()
