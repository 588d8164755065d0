"""
Hook entry points invoked by the assistant CLI.

Each hook is a short-lived process: it reads one JSON object from stdin,
talks to the chat (and, for permission requests, waits on the prompt
mailbox), and exits. Only the permission hook writes to stdout.
"""
