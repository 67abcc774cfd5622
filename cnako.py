import sys
from pathlib import Path

from nako.nako_runtime import NakoCompiler
from nako.nako_datatypes import NakoError


def read_line(prompt: str) -> str:
    return input(prompt)


def run_script_file(file_path: str, compile_only: bool = False, debug: bool = False):
    """Run a nadesiko source file non-interactively and exit with appropriate status."""
    p = Path(file_path)
    try:
        source = p.read_text(encoding="utf-8")
    except FileNotFoundError:
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        raise SystemExit(1)
    compiler = NakoCompiler(debug=debug, silent=False, filename=p.name)
    try:
        if compile_only:
            program = compiler.compile(source)
            print(compiler.get_header_text() + compiler.get_scope_bootstrap_text() + program)
            return
        compiler.run_reset(source)
    except NakoError as e:
        print(e, file=sys.stderr)
        raise SystemExit(1)


def main(argv=None):
    """Run a source file when provided, otherwise start the interactive REPL."""
    args = list(sys.argv[1:] if argv is None else argv)
    compile_only = '-c' in args
    debug = '-d' in args
    files = [a for a in args if not a.startswith('-')]
    if files:
        run_script_file(files[0], compile_only=compile_only, debug=debug)
        return

    print("nadesiko REPL v0.1")
    print("Type 'exit' or press Ctrl+D to quit.")

    compiler = NakoCompiler(debug=debug, silent=False, filename='repl')
    while True:
        try:
            line = read_line(">> ").strip()
        except EOFError:
            print("\nExiting.")
            break
        if not line:
            continue
        if line == "exit":
            break
        try:
            # Cumulative session: variables survive between lines
            compiler.run(line)
        except NakoError as e:
            print(e, file=sys.stderr)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\nExiting.")
