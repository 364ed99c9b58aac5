"""
CLI for manual testing of the wake and morning routine system
"""

import asyncio
import json
import sys
from datetime import datetime

import click

from .audio import AudioSessionManager
from .calendar import CalendarSummaryClient
from .config import RoutineConfig
from .errors import DaybreakError
from .logging_utils import setup_logging, get_logger
from .models import AudioOwner, SoundId, TaskResult
from .player import Mpg123Backend
from .podcast import PodcastFeedClient
from .scheduler import next_fire_time
from .service import AlarmService
from .speech import Pyttsx3Speaker, SpeechCallbacks
from .store import AlarmStateStore

logger = get_logger(__name__)


def _parse_time(value: str):
    try:
        return datetime.strptime(value, "%H:%M").time()
    except ValueError:
        raise click.BadParameter(f"Expected HH:MM, got '{value}'")


@click.group()
@click.option('--log-level', default='INFO', help='Log level')
@click.option('--log-format', default='text', type=click.Choice(['text', 'json']), help='Log format')
@click.pass_context
def cli(ctx, log_level, log_format):
    """Daybreak CLI - Test the alarm and morning routine"""
    setup_logging(log_level=log_level, log_format=log_format)
    ctx.ensure_object(dict)
    ctx.obj['config'] = RoutineConfig.from_env()


@cli.command()
@click.pass_context
def status(ctx):
    """Show the persisted alarm state"""
    config = ctx.obj['config']
    state = AlarmStateStore(config.state_file).load()
    click.echo(json.dumps(json.loads(state.model_dump_json()), indent=2))


@cli.command('next-fire')
@click.argument('time_of_day')
def next_fire(time_of_day):
    """Show when an alarm set for TIME_OF_DAY (HH:MM) would fire"""
    fire_at = next_fire_time(_parse_time(time_of_day), datetime.now())
    click.echo(f"Alarm would fire at {fire_at.isoformat()}")


@cli.command()
@click.option('--sound', '-s', default=SoundId.GENTLE_WAKEUP.value,
              type=click.Choice([s.value for s in SoundId]), help='Alarm tone')
@click.option('--seconds', '-n', default=5.0, help='How long to ring')
@click.pass_context
def ring(ctx, sound, seconds):
    """Ring an alarm tone for a few seconds"""
    config = ctx.obj['config']
    path = config.sounds.path_for(SoundId(sound))
    if path is None:
        click.echo("Silent tone selected, nothing to play")
        return

    async def run():
        audio = AudioSessionManager(Mpg123Backend(config.audio_binary), config.timings.audio_settle_s)
        session = await audio.acquire(AudioOwner.RINGER)
        tone = await session.load(path, loop=True, volume=1.0)
        await tone.play()
        await asyncio.sleep(seconds)
        await audio.release(AudioOwner.RINGER)

    try:
        asyncio.run(run())
    except DaybreakError as e:
        click.echo(f"Ring failed: {e}")
        sys.exit(1)
    click.echo(f"Rang {sound} for {seconds}s")


@cli.command()
@click.argument('text')
@click.option('--timeout', '-t', default=30.0, help='Give up after this many seconds')
@click.pass_context
def speak(ctx, text, timeout):
    """Speak TEXT through the speech backend"""
    config = ctx.obj['config']

    async def run() -> str:
        loop = asyncio.get_running_loop()
        outcome = loop.create_future()

        def settle(result):
            if not outcome.done():
                outcome.set_result(result)

        speaker = Pyttsx3Speaker(config.speech)
        speaker.speak(text, SpeechCallbacks(
            on_done=lambda: settle("done"),
            on_stopped=lambda: settle("stopped"),
            on_error=lambda e: settle(f"error: {e}"),
        ))
        try:
            return await asyncio.wait_for(outcome, timeout=timeout)
        except asyncio.TimeoutError:
            speaker.stop()
            return "timeout"

    click.echo(f"Speech finished: {asyncio.run(run())}")


@cli.command()
@click.pass_context
def summary(ctx):
    """Fetch today's calendar summary"""
    config = ctx.obj['config']
    try:
        text = asyncio.run(CalendarSummaryClient(config.calendar).fetch_summary())
    except DaybreakError as e:
        click.echo(f"Calendar failed: {e}")
        sys.exit(1)
    click.echo(text)


@cli.command()
@click.pass_context
def episode(ctx):
    """Resolve the latest podcast episode"""
    config = ctx.obj['config']
    try:
        latest = PodcastFeedClient(config.podcast).latest_episode()
    except DaybreakError as e:
        click.echo(f"Podcast failed: {e}")
        sys.exit(1)
    click.echo(f"Latest episode: {latest.title}")
    click.echo(f"  Published: {latest.published}")
    click.echo(f"  Audio: {latest.audio_url}")


@cli.command()
@click.pass_context
def prewarm(ctx):
    """Run one pre-warm pass against the restored alarm"""
    config = ctx.obj['config']

    async def run() -> TaskResult:
        service = AlarmService(config)
        await service.init()
        try:
            return await service.prewarm.run()
        finally:
            await service.teardown()

    result = asyncio.run(run())
    click.echo(f"Pre-warm result: {result.value}")
    if result is TaskResult.FAILED:
        sys.exit(1)


@cli.command()
@click.option('--listen', '-l', default=60.0, help='Seconds of podcast to play before exiting')
@click.pass_context
def routine(ctx, listen):
    """Run the morning routine now"""
    config = ctx.obj['config']

    async def run():
        service = AlarmService(config)
        await service.init()
        try:
            await service.start_routine()
            await service.orchestrator.wait_until_settled()
            report = service.orchestrator.report
            click.echo(json.dumps(report.to_dict(), indent=2, default=str))
            if service.audio.is_held() is AudioOwner.PODCAST:
                await asyncio.sleep(listen)
        finally:
            await service.teardown()

    asyncio.run(run())


if __name__ == '__main__':
    cli()
