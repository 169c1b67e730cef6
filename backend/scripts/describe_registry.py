#!/usr/bin/env python3
"""
Print the device models and provisioned devices the gateway will load.

Usage:
    python describe_registry.py              # built-in catalog
    python describe_registry.py registry.json
    REGISTRY_FILE=registry.json python describe_registry.py

Pass --show-secrets to include device secrets (for handing to vendors).
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)) + '/..')

from catalog import load_registries
from settings import settings


def main(argv):
    show_secrets = "--show-secrets" in argv
    args = [a for a in argv[1:] if not a.startswith("--")]
    path = args[0] if args else settings.registry_file

    models, devices = load_registries(path)
    print('Source:', path or 'built-in catalog')

    print('\n== Models ==')
    for c in models.all():
        print(f'- {c.model_id}  ({c.display_name}@{c.version})')
        for rule in c.fields:
            req = 'required' if rule.required else 'optional'
            print(f'    {rule.key:<20} {rule.type:<8} {req}')

    print('\n== Devices ==')
    for d in devices.all():
        line = f'- {d.device_id:<22} model: {d.model_id:<18} enabled: {d.enabled}'
        if show_secrets:
            line += f'  secret: {d.secret}'
        print(line)

    if devices.all():
        print(f'\nManifest example: GET /manifest/{devices.all()[0].device_id}')


if __name__ == "__main__":
    main(sys.argv)
