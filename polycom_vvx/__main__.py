#!/usr/bin/env python3

# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

from __future__ import annotations

import sys
import argparse
import json
import logging

from polycom_vvx.internal_types import *

from polycom_vvx import (
    __version__ as pkg_version,
    SipProbe,
    RestClient,
    ClientConfig,
    Credential,
    DeviceOutcome,
    PushPriority,
    list_commands,
    run_command,
    run_for_devices,
    push_message,
    DEFAULT_NOTIFY_EVENT,
    DEFAULT_URI_TIMEOUT_MS,
    HTTP_METHODS,
  )

class CmdExitError(RuntimeError):
    exit_code: int

    def __init__(self, exit_code: int, msg: Optional[str]=None):
        if msg is None:
            msg = f"Command exited with return code {exit_code}"
        super().__init__(msg)
        self.exit_code = exit_code

class ArgparseExitError(CmdExitError):
    pass

class NoExitArgumentParser(argparse.ArgumentParser):
    def exit(self, status=0, message=None):
        if message:
            self._print_message(message, sys.stderr)
        raise ArgparseExitError(status, message)

def _print_json(data: Jsonable) -> None:
    print(json.dumps(data, indent=2, sort_keys=True))
    sys.stdout.flush()

class CommandHandler:
    _argv: Optional[Sequence[str]]
    _parser: argparse.ArgumentParser
    _args: argparse.Namespace
    _config: ClientConfig

    def __init__(self, argv: Optional[Sequence[str]]=None):
        self._argv = argv

    def cmd_bare(self) -> int:
        print("A command is required", file=sys.stderr)
        return 1

    def _parse_body(self, body: Optional[str]) -> Any:
        if body is None:
            return None
        try:
            return json.loads(body)
        except json.JSONDecodeError as e:
            raise CmdExitError(1, f"--body is not valid JSON: {e}") from e

    def _get_credential(self) -> Optional[Credential]:
        if self._args.username is not None:
            self._config.username = self._args.username
            self._config.password = self._args.password
        return self._config.get_credential()

    def _create_rest_client(self) -> RestClient:
        return RestClient(
            credential=self._get_credential(),
            ignore_tls_errors=self._config.ignore_tls_errors,
            retry_count=self._config.retry_count,
            request_timeout_ms=self._config.request_timeout_ms,
          )

    def _create_probe(self) -> SipProbe:
        return SipProbe(
            wait_time_ms=self._config.wait_time_ms,
            local_ip=self._config.local_ip,
            local_port=self._args.local_port,
          )

    def _report_outcomes(self, outcomes: List[DeviceOutcome]) -> int:
        failed = 0
        for outcome in outcomes:
            summary: JsonableDict = { "device": outcome.device }
            if outcome.ok:
                summary["result"] = outcome.result
            else:
                failed += 1
                summary["error"] = str(outcome.error)
            _print_json(summary)
        return 0 if failed == 0 else 1

    def cmd_discover(self) -> int:
        probe = self._create_probe()
        for device in self._args.devices:
            _print_json(probe.discover(device, self._config.sip_port).to_jsonable())
        return 0

    def cmd_notify(self) -> int:
        probe = self._create_probe()
        for device in self._args.devices:
            _print_json(probe.notify(device, self._config.sip_port, self._args.event).to_jsonable())
        return 0

    def cmd_rest(self) -> int:
        body = self._parse_body(self._args.body)
        with self._create_rest_client() as client:
            outcomes = run_for_devices(
                self._args.devices,
                lambda device: client.dispatch(
                    device,
                    self._args.rest_command,
                    protocol=self._config.protocol,
                    port=self._config.port,
                    base=self._args.base,
                    method=self._args.method,
                    body=body,
                  )
              )
            rc = self._report_outcomes(outcomes)
            if self._args.show_last_call and client.last_call is not None:
                print(json.dumps({ "last_call": client.last_call.to_jsonable() }, indent=2), file=sys.stderr)
        return rc

    def cmd_get(self) -> int:
        timeout_ms: int = self._args.request_timeout_ms if self._args.request_timeout_ms is not None else DEFAULT_URI_TIMEOUT_MS
        with self._create_rest_client() as client:
            outcomes = run_for_devices(
                self._args.uris,
                lambda uri: client.get_uri(uri, request_timeout_ms=timeout_ms)
              )
            return self._report_outcomes(outcomes)

    def cmd_push(self) -> int:
        with self._create_rest_client() as client:
            outcomes = run_for_devices(
                self._args.devices,
                lambda device: push_message(
                    client,
                    device,
                    self._args.message,
                    priority=self._args.priority,
                    protocol=self._config.protocol,
                    port=self._config.port,
                  )
              )
            return self._report_outcomes(outcomes)

    def cmd_command(self) -> int:
        body = self._parse_body(self._args.body)
        # an explicit --timeout overrides a command's own timeout (e.g. dial)
        call_options: Dict[str, Any] = {}
        if self._args.request_timeout_ms is not None:
            call_options['request_timeout_ms'] = self._args.request_timeout_ms
        with self._create_rest_client() as client:
            outcomes = run_for_devices(
                self._args.devices,
                lambda device: run_command(
                    client,
                    device,
                    self._args.command_name,
                    body=body,
                    protocol=self._config.protocol,
                    port=self._config.port,
                    **call_options
                  )
              )
            return self._report_outcomes(outcomes)

    def cmd_commands(self) -> int:
        for spec in list_commands():
            print(f"{spec.name:<16} {spec.method.upper():<6} {spec.path:<28} {spec.description}")
        return 0

    def cmd_version(self) -> int:
        print(pkg_version)
        return 0

    def run(self) -> int:
        """Run the polycom-vvx command-line tool with provided arguments

        Args:
            argv (Optional[Sequence[str]], optional):
                A list of commandline arguments (NOT including the program as argv[0]!),
                or None to use sys.argv[1:]. Defaults to None.

        Returns:
            int: The exit code that would be returned if this were run as a standalone command.
        """
        parser = NoExitArgumentParser(description="Discover, query and manage Polycom VVX phones.")


        # ======================= Main command

        self._parser = parser
        parser.add_argument('--traceback', "--tb", action='store_true', default=False,
                            help='Display detailed exception information')
        parser.add_argument('--log-level', dest='log_level', default='warning',
                            choices=['debug', 'info', 'warning', 'error', 'critical'],
                            help='''The logging level to use. Default: warning''')
        parser.add_argument('-c', '--config', dest='config_file', default=None,
                            help='''JSON configuration file. Default: $POLYCOM_VVX_CONFIG or ~/.config/polycom-vvx/config.json''')
        parser.set_defaults(func=self.cmd_bare)

        subparsers = parser.add_subparsers(
                            title='Commands',
                            description='Valid commands',
                            help='Additional help available with "<command-name> -h"')

        probe_options = NoExitArgumentParser(add_help=False)
        probe_options.add_argument('--sip-port', dest='sip_port', type=int, default=None,
                            help='''The SIP port of the phones. Default: 5060''')
        probe_options.add_argument('--wait-time', dest='wait_time_ms', type=int, default=None,
                            help='''The time to wait for a reply, in milliseconds. Default: 350''')
        probe_options.add_argument('--local-ip', dest='local_ip', default=None,
                            help='''The local IP address to send from. Default: the address on the default gateway interface''')
        probe_options.add_argument('--local-port', dest='local_port', type=int, default=None,
                            help='''The local UDP port to send from. Default: an unused port in 49152-65535''')

        rest_options = NoExitArgumentParser(add_help=False)
        rest_options.add_argument('--protocol', type=str.upper, choices=['HTTP', 'HTTPS'], default=None,
                            help='''The protocol of the phone web server. Default: HTTP''')
        rest_options.add_argument('--port', type=int, default=None,
                            help='''The port of the phone web server. Default: 80''')
        rest_options.add_argument('--retry-count', dest='retry_count', type=int, default=None,
                            help='''Retries after a transport failure. Default: 3''')
        rest_options.add_argument('--timeout', dest='request_timeout_ms', type=int, default=None,
                            help='''Per-attempt request timeout, in milliseconds. Default: 300''')
        rest_options.add_argument('-k', '--ignore-tls-errors', dest='ignore_tls_errors', action='store_true', default=None,
                            help='''Do not validate the phone's TLS certificate''')
        rest_options.add_argument('-u', '--username', default=None,
                            help='''The user name for the phone web interface''')
        rest_options.add_argument('-p', '--password', default=None,
                            help='''The password. Default: looked up in the keyring''')
        rest_options.add_argument('--keyring-service', dest='keyring_service', default=None,
                            help='''The keyring service holding passwords. Default: polycom-vvx''')

        # ======================= discover

        parser_discover = subparsers.add_parser('discover', parents=[probe_options],
                                description="Probe phones with a SIP NOTIFY and report model and user")
        parser_discover.add_argument('devices', nargs='+', help='Phone host names or IP addresses')
        parser_discover.set_defaults(func=self.cmd_discover)

        # ======================= notify

        parser_notify = subparsers.add_parser('notify', parents=[probe_options],
                                description="Send a SIP NOTIFY event (e.g. check-sync) to phones")
        parser_notify.add_argument('devices', nargs='+', help='Phone host names or IP addresses')
        parser_notify.add_argument('--event', default=DEFAULT_NOTIFY_EVENT,
                            help=f'''The SIP event to deliver. Default: {DEFAULT_NOTIFY_EVENT}''')
        parser_notify.set_defaults(func=self.cmd_notify)

        # ======================= rest

        parser_rest = subparsers.add_parser('rest', parents=[rest_options],
                                description="Call a REST API command on phones")
        parser_rest.add_argument('devices', nargs='+', help='Phone host names or IP addresses')
        parser_rest.add_argument('--command', dest='rest_command', required=True,
                            help='''The command path; e.g. mgmt/device/info''')
        parser_rest.add_argument('-X', '--method', type=str.capitalize, choices=list(HTTP_METHODS), default='Get',
                            help='''The HTTP method. Default: Get''')
        parser_rest.add_argument('--base', default='api/v1',
                            help='''The API base path. Default: api/v1''')
        parser_rest.add_argument('--body', default=None,
                            help='''A JSON request body, sent as {"data": ...}''')
        parser_rest.add_argument('--show-last-call', dest='show_last_call', action='store_true', default=False,
                            help='''Print the last REST attempt to stderr''')
        parser_rest.set_defaults(func=self.cmd_rest)

        # ======================= get

        parser_get = subparsers.add_parser('get', parents=[rest_options],
                                description="GET full URIs from phones")
        parser_get.add_argument('uris', nargs='+', help='Full URIs')
        parser_get.set_defaults(func=self.cmd_get)

        # ======================= push

        parser_push = subparsers.add_parser('push', parents=[rest_options],
                                description="Push a notification to phone screens")
        parser_push.add_argument('devices', nargs='+', help='Phone host names or IP addresses')
        parser_push.add_argument('-m', '--message', required=True,
                            help='''The HTML content to display''')
        parser_push.add_argument('--priority', choices=[p.value for p in PushPriority], default=PushPriority.NORMAL.value,
                            help='''The notification priority. Default: Normal''')
        parser_push.set_defaults(func=self.cmd_push)

        # ======================= command

        parser_command = subparsers.add_parser('command', parents=[rest_options],
                                description="Run a named operation from the command catalogue on phones")
        parser_command.add_argument('command_name', help='The operation name; see "commands"')
        parser_command.add_argument('devices', nargs='+', help='Phone host names or IP addresses')
        parser_command.add_argument('--body', default=None,
                            help='''A JSON request body, for operations that take one''')
        parser_command.set_defaults(func=self.cmd_command)

        # ======================= commands

        parser_commands = subparsers.add_parser('commands',
                                description='''List the command catalogue.''')
        parser_commands.set_defaults(func=self.cmd_commands)

        # ======================= version

        parser_version = subparsers.add_parser('version',
                                description='''Display version information.''')
        parser_version.set_defaults(func=self.cmd_version)

        # =========================================================

        try:
            args = parser.parse_args(self._argv)
        except ArgparseExitError as ex:
            return ex.exit_code
        traceback: bool = args.traceback

        try:
            logging.basicConfig(
                level=logging.getLevelName(args.log_level.upper()),
            )
            self._args = args
            self._config = ClientConfig.load_default(args.config_file)
            self._config.update({
                k: getattr(args, k, None) for k in (
                    'protocol', 'port', 'retry_count', 'request_timeout_ms', 'ignore_tls_errors',
                    'keyring_service', 'wait_time_ms', 'local_ip', 'sip_port',
                  )
              })
            func: Callable[[], int] = args.func
            logging.debug(f"Running command {func.__name__}, tb = {traceback}")
            rc = func()
            logging.debug(f"Command {func.__name__} returned {rc}")
        except Exception as ex:
            if isinstance(ex, CmdExitError):
                rc = ex.exit_code
            else:
                rc = 1
            if rc != 0:
                if traceback:
                    raise
            print(f"polycom-vvx: error: {ex}", file=sys.stderr)
        except BaseException as ex:
            print(f"polycom-vvx: Unhandled exception: {ex}", file=sys.stderr)
            raise

        return rc

def run(argv: Optional[Sequence[str]]=None) -> int:
    try:
        rc = CommandHandler(argv).run()
    except CmdExitError as ex:
        rc = ex.exit_code
    return rc

def main() -> None:
    sys.exit(run())

# allow running with "python3 -m", or as a standalone script
if __name__ == "__main__":
    main()
