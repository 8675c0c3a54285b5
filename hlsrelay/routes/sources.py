import asyncio
import logging

import aiohttp
from flask import Blueprint, request

from hlsrelay.routes.utils import respond_with, preflight
from hlsrelay.players import dailymotion, flashplayer, vkspeed
from hlsrelay.utils.errors import RelayError

sources_bp = Blueprint('sources', __name__)


def _collect_players(*modules):
    """Map every host name a player module answers to onto its handler."""
    players = {}
    for module in modules:
        module_name = module.__name__.rsplit('.', 1)[-1]
        handler = getattr(module, f'get_video_from_{module_name}_player')
        for name in getattr(module, 'NAMES', [module_name]):
            players[name] = handler
    return players


PLAYERS = _collect_players(dailymotion, flashplayer, vkspeed)


def failure(message: str, status: int):
    return respond_with({'success': False, 'error': message}, status=status)


@sources_bp.route('/sources', methods=['GET', 'OPTIONS'])
async def get_sources():
    """
    Resolve a provider id into a relayed stream
    Query params:
    - id: provider specific video id
    - host: dm, fp or vk
    :return: JSON response
    """
    if request.method == 'OPTIONS':
        return preflight('GET, OPTIONS', 'Content-Type', status=204)

    video_id = request.args.get('id')
    host = request.args.get('host', '').lower()

    if not video_id:
        return failure('Missing required query parameter: id', 400)

    player_function = PLAYERS.get(host)
    if not player_function:
        return failure('Unknown host', 400)

    try:
        async with aiohttp.ClientSession() as session:
            source = await player_function(session, video_id)
    except (RelayError, aiohttp.ClientError, asyncio.TimeoutError) as e:
        logging.error(f"{host} player error for {video_id}: {type(e).__name__}: {e}")
        return failure(str(e) or 'Internal error', 500)
    except Exception as e:
        logging.exception(f"Unexpected {host} player error for {video_id}")
        return failure(str(e) or 'Internal error', 500)

    return respond_with({'success': True, 'url': video_id, 'host': host, 'data': source.to_dict()})
