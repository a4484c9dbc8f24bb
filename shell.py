"""Interactive shell for file system operations."""

import os
from datetime import datetime
from typing import Callable, Optional

from arena import Arena
from constants import BLOCK_SIZE, TOTAL_BLOCKS, MAX_FILES, MAX_CHILDREN, PERM_ALL
from errors import FileSystemError
from file_system import FileSystem
from structures import Layout

TIME_FORMAT = '%Y-%m-%d %H:%M:%S'


def format_time(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp).strftime(TIME_FORMAT)


def parse_permissions(text: str) -> int:
    """Parse ``7``/``5``/... or ``rwx``/``r-x``/... into permission bits."""
    if len(text) == 1 and text.isdigit():
        value = int(text)
        if value > PERM_ALL:
            raise ValueError(f"Invalid permissions '{text}'")
        return value

    if len(text) != 3:
        raise ValueError(f"Invalid permissions '{text}'")
    value = 0
    for char, expected, bit in zip(text, 'rwx', (1, 2, 4)):
        if char == expected:
            value |= bit
        elif char != '-':
            raise ValueError(f"Invalid permissions '{text}'")
    return value


class Shell:
    """Interactive shell for file system operations."""

    def __init__(self, fs: Optional[FileSystem] = None,
                 input_func: Callable[[str], str] = input):
        self.fs = fs
        self.input = input_func
        self.username = "user"
        self.running = True

    def run(self, disk_path: Optional[str] = None, blocks: int = TOTAL_BLOCKS):
        """Run the shell.

        With ``disk_path``, an existing image is mounted (otherwise a new one
        is formatted) and the arena is written back to it on exit.
        """
        print("=" * 60)
        print("Block File System Simulator - Interactive Shell")
        print("=" * 60)

        if self.fs is None:
            try:
                self.fs = self.open_file_system(disk_path, blocks)
            except FileSystemError as e:
                print(f"Error: {e}")
                return

        try:
            name = self.input("Enter your username: ").strip()
        except EOFError:
            name = ""
        if name:
            self.username = name

        self.cmd_help([])

        while self.running:
            try:
                command = self.input(self.prompt()).strip()
                if not command:
                    continue

                self.execute_command(command)

            except KeyboardInterrupt:
                print("\nUse 'exit' or 'quit' to exit")
            except EOFError:
                break

        # Cleanup
        self.fs.shutdown()
        if disk_path:
            self.fs.arena.save_image(disk_path)
            print(f"Disk image saved to {disk_path}")
        print("\nGoodbye!")

    @staticmethod
    def open_file_system(disk_path: Optional[str], blocks: int) -> FileSystem:
        """Mount an existing image or format a new arena."""
        if disk_path and os.path.exists(disk_path):
            arena = Arena.open_image(disk_path)
            print(f"Disk opened: {disk_path} ({arena.blocks} blocks)")
            return FileSystem.mount(arena)

        layout = Layout.for_blocks(blocks, BLOCK_SIZE, MAX_FILES, MAX_CHILDREN)
        print(f"New disk: {layout.blocks} blocks of {BLOCK_SIZE} bytes")
        return FileSystem(layout.arena_size, BLOCK_SIZE, MAX_FILES, MAX_CHILDREN)

    def prompt(self) -> str:
        path = self.fs.current_path()
        return f"\033[32m{self.username}@fs\033[0m:\033[34m{path}\033[0m$ "

    def execute_command(self, command: str):
        """Execute a shell command."""
        parts = command.split()
        if not parts:
            return

        cmd = parts[0].lower()
        args = parts[1:]
        if cmd == 'write':
            # Content is the rest of the line, spacing included
            args = command.strip().split(None, 2)[1:]

        # Command routing
        commands = {
            'help': self.cmd_help,
            'touch': self.cmd_touch,
            'mkdir': self.cmd_mkdir,
            'ls': self.cmd_ls,
            'cd': self.cmd_cd,
            'pwd': self.cmd_pwd,
            'rm': self.cmd_rm,
            'write': self.cmd_write,
            'cat': self.cmd_cat,
            'chmod': self.cmd_chmod,
            'stat': self.cmd_stat,
            'df': self.cmd_df,
            'fsck': self.cmd_fsck,
            'exit': self.cmd_exit,
            'quit': self.cmd_exit,
        }

        if cmd not in commands:
            print("Command not found. Type 'help' for list of commands.")
            return

        try:
            commands[cmd](args)
        except FileSystemError as e:
            print(f"Error: {e}")

    def cmd_help(self, args):
        """Display help information."""
        print("\nAvailable commands:")
        print("  help               - Show this help message")
        print("  touch <name>       - Create a new file")
        print("  mkdir <name>       - Create a new directory")
        print("  ls                 - List files in current directory")
        print("  cd <dir>           - Change current directory")
        print("  pwd                - Print current directory")
        print("  rm <name>          - Remove a file or directory")
        print("  write <f> <txt>    - Write text to file")
        print("  cat <file>         - Display file content")
        print("  chmod <perm> <name>- Set permissions (e.g. 5 or r-x)")
        print("  stat <name>        - Display file statistics")
        print("  df                 - Display block usage")
        print("  fsck               - Check file system consistency")
        print("  exit, quit         - Exit the filesystem\n")

    def cmd_touch(self, args):
        """Create a new file."""
        if not args:
            print("Usage: touch <filename>")
            return
        self.fs.create(args[0])

    def cmd_mkdir(self, args):
        """Create a new directory."""
        if not args:
            print("Usage: mkdir <dirname>")
            return
        self.fs.create(args[0], is_directory=True)

    def cmd_ls(self, args):
        """List files in current directory."""
        entries = self.fs.list()
        if not entries:
            print("(empty directory)")
            return

        for entry in entries:
            color = "\033[34m" if entry.is_directory else "\033[32m"
            print(f"{entry.mode}\t{entry.size} bytes\t"
                  f"Created: {format_time(entry.created)}\t"
                  f"Modified: {format_time(entry.modified)}\t"
                  f"{color}{entry.name}\033[0m")

    def cmd_cd(self, args):
        """Change directory."""
        if not args:
            print("Usage: cd <directory>")
            return
        self.fs.change_directory(args[0])

    def cmd_pwd(self, args):
        """Print the current directory."""
        print(self.fs.current_path())

    def cmd_rm(self, args):
        """Remove a file or directory."""
        if not args:
            print("Usage: rm <name>")
            return

        if not self.fs.delete(args[0], confirm=self.confirm_delete):
            print("Deletion cancelled")

    def confirm_delete(self) -> bool:
        answer = self.input("Directory not empty. Delete? (y/n): ")
        return answer.strip().lower().startswith('y')

    def cmd_write(self, args):
        """Write text to a file, replacing its content."""
        if not args:
            print("Usage: write <filename> <text>")
            return

        text = args[1] if len(args) > 1 else ''
        data = text.encode('utf-8')
        bytes_written = self.fs.write(args[0], data)
        if bytes_written < len(data):
            print(f"Warning: file truncated to {bytes_written} bytes")

    def cmd_cat(self, args):
        """Display file contents."""
        if not args:
            print("Usage: cat <filename>")
            return

        data = self.fs.read(args[0])
        try:
            print(data.decode('utf-8'))
        except UnicodeDecodeError:
            print(f"(binary data, {len(data)} bytes)")
            print("First 100 bytes (hex):", data[:100].hex())

    def cmd_chmod(self, args):
        """Set permission bits."""
        if len(args) < 2:
            print("Usage: chmod <permissions> <name>")
            return

        try:
            permissions = parse_permissions(args[0])
        except ValueError as e:
            print(f"Error: {e}")
            return
        self.fs.chmod(args[1], permissions)

    def cmd_stat(self, args):
        """Display file statistics."""
        if not args:
            print("Usage: stat <name>")
            return

        info = self.fs.stat(args[0])
        print(f"\n{'='*60}")
        print(f"Statistics for '{info['name']}' (slot {info['slot']})")
        print(f"{'='*60}")
        print(f"  Type:           {info['type'].capitalize()}")
        print(f"  Size:           {info['size']} bytes")
        print(f"  Permissions:    {info['permissions']}")
        print(f"  Created:        {format_time(info['created'])}")
        print(f"  Modified:       {format_time(info['modified'])}")
        if 'blocks' in info:
            print(f"  Blocks:         {info['blocks'] or 'None'}")
        else:
            print(f"  Entries:        {info['entries']}")
        print(f"{'='*60}\n")

    def cmd_df(self, args):
        """Display block and record usage."""
        usage = self.fs.usage()
        used_pct = usage['used_blocks'] / usage['total_blocks'] * 100
        print(f"Blocks:  {usage['used_blocks']}/{usage['total_blocks']} used "
              f"({used_pct:.1f}%), {usage['block_size']} bytes each")
        print(f"Records: {usage['used_records']}/{usage['total_records']} used")
        print(f"Arena:   {usage['arena_size']} bytes "
              f"({usage['metadata_size']} bytes metadata)")
        print(f"Disk reads: {usage['disk_reads']}  Disk writes: {usage['disk_writes']}")

    def cmd_fsck(self, args):
        """Check file system consistency."""
        problems = self.fs.check()
        if not problems:
            print("File system is consistent")
            return
        for problem in problems:
            print(f"  {problem}")
        print(f"{len(problems)} problem(s) found")

    def cmd_exit(self, args):
        """Exit the shell."""
        self.running = False
